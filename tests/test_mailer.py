"""Unit tests for core/mailer.py -- SMTP delivery with smtplib mocked out."""

import smtplib
from unittest.mock import patch

import pytest

from core.config import Settings
from core.mailer import ConsoleMailer, MailDeliveryError, Mailer, SMTPMailer, build_mailer


def _mailer(**overrides) -> SMTPMailer:
    fields = {"host": "smtp.example.com", "port": 587, "from_email": "noreply@example.com"}
    fields.update(overrides)
    return SMTPMailer(**fields)


class TestSMTPMailer:
    def test_starttls_login_and_send(self):
        with patch("core.mailer.smtplib.SMTP") as smtp_cls:
            _mailer(username="user", password="pw").send("a@example.com", "Hello", text="Body")
        smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=30)
        server = smtp_cls.return_value
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("user", "pw")
        msg = server.send_message.call_args.args[0]
        assert msg["To"] == "a@example.com"
        assert msg["From"] == "noreply@example.com"
        assert msg["Subject"] == "Hello"
        assert "Body" in msg.get_content()
        server.quit.assert_called_once()

    def test_no_login_without_username(self):
        with patch("core.mailer.smtplib.SMTP") as smtp_cls:
            _mailer().send("a@example.com", "Hello", text="Body")
        smtp_cls.return_value.login.assert_not_called()

    def test_implicit_ssl(self):
        with patch("core.mailer.smtplib.SMTP_SSL") as ssl_cls, patch("core.mailer.smtplib.SMTP") as smtp_cls:
            _mailer(port=465, use_ssl=True).send("a@example.com", "Hello", text="Body")
        ssl_cls.assert_called_once_with("smtp.example.com", 465, timeout=30)
        smtp_cls.assert_not_called()
        ssl_cls.return_value.starttls.assert_not_called()

    def test_html_alternative(self):
        with patch("core.mailer.smtplib.SMTP") as smtp_cls:
            _mailer().send("a@example.com", "Hello", text="Body", html="<p>Body</p>")
        msg = smtp_cls.return_value.send_message.call_args.args[0]
        assert msg.is_multipart()

    @pytest.mark.parametrize("error", [OSError("refused"), smtplib.SMTPAuthenticationError(535, b"bad auth")])
    def test_failure_raises_mail_delivery_error(self, error):
        with patch("core.mailer.smtplib.SMTP", side_effect=error):
            with pytest.raises(MailDeliveryError):
                _mailer().send("a@example.com", "Hello", text="Body")

    def test_send_failure_still_quits(self):
        with patch("core.mailer.smtplib.SMTP") as smtp_cls:
            smtp_cls.return_value.send_message.side_effect = smtplib.SMTPRecipientsRefused({})
            with pytest.raises(MailDeliveryError):
                _mailer().send("a@example.com", "Hello", text="Body")
        smtp_cls.return_value.quit.assert_called_once()

    def test_starttls_failure_closes_socket(self):
        with patch("core.mailer.smtplib.SMTP") as smtp_cls:
            smtp_cls.return_value.starttls.side_effect = smtplib.SMTPNotSupportedError("STARTTLS not offered")
            with pytest.raises(MailDeliveryError):
                _mailer().send("a@example.com", "Hello", text="Body")
        server = smtp_cls.return_value
        server.close.assert_called_once()
        server.quit.assert_not_called()
        server.send_message.assert_not_called()


class TestMailerInterface:
    def test_send_is_abstract(self):
        class Incomplete(Mailer):
            pass

        with pytest.raises(TypeError):
            Incomplete()

    @pytest.mark.parametrize("impl", [ConsoleMailer, SMTPMailer])
    def test_concrete_mailers_are_mailers(self, impl):
        assert issubclass(impl, Mailer)


class TestBuildMailer:
    def test_debug_without_smtp_logs_only(self):
        assert isinstance(build_mailer(Settings(_env_file=None, debug=True)), ConsoleMailer)

    def test_configured_smtp(self):
        settings = Settings(_env_file=None, debug=True, smtp_host="smtp.example.com", smtp_port=2525)
        mailer = build_mailer(settings)
        assert isinstance(mailer, SMTPMailer)
        assert mailer.port == 2525

    def test_production_without_smtp_still_smtp(self):
        settings = Settings(_env_file=None, debug=False, jwt_secret_access_token="s" * 32)
        assert isinstance(build_mailer(settings), SMTPMailer)

    def test_console_mailer_never_raises(self):
        ConsoleMailer().send("a@example.com", "Hello", text="Body")
