import hashlib
import smtplib

import bcrypt
from alembic import command
from alembic.config import Config
from pathlib import Path
from sqlalchemy import create_engine, inspect

from app.config import Settings
from app.mailer import Mailer, verification_email_html
from app.security import generate_verification_code, hash_password

ROOT = Path(__file__).resolve().parents[1]


def test_password_hash_uses_cost_12():
    h = hash_password("Secret123!")
    assert h != "Secret123!"
    assert h.startswith("$2b$12$")
    assert bcrypt.checkpw(b"Secret123!", h.encode())
    assert not bcrypt.checkpw(b"wrong", h.encode())


def test_long_password_is_prehashed():
    pw = "x" * 100
    h = hash_password(pw)
    assert bcrypt.checkpw(hashlib.sha256(pw.encode()).digest(), h.encode())
    assert not bcrypt.checkpw(hashlib.sha256(("x" * 99).encode()).digest(), h.encode())


def test_verification_code_shape():
    codes = {generate_verification_code() for _ in range(200)}
    assert all(len(c) == 6 and c.isdigit() for c in codes)
    assert len(codes) > 1


def test_database_url_normalized():
    s = Settings(_env_file=None, DATABASE_URL="postgres://u:p@h/db")
    assert s.database_url == "postgresql+psycopg://u:p@h/db"
    assert Settings(_env_file=None, DATABASE_URL="sqlite:///x.db").database_url == "sqlite:///x.db"
    assert Settings(_env_file=None).database_url is None


def test_mailer_without_smtp_config_reports_failure():
    assert Mailer(Settings(_env_file=None)).send("a@b.com", "hi", "<p>hi</p>") is False


def test_mailer_disabled_reports_success():
    assert Mailer(Settings(_env_file=None, SMTP_DISABLE=True)).send("a@b.com", "hi", "<p>hi</p>") is True


def test_mailer_smtp_error_reports_failure(monkeypatch):
    def refuse(*args, **kwargs):
        raise smtplib.SMTPConnectError(421, "unavailable")

    monkeypatch.setattr(smtplib, "SMTP", refuse)
    settings = Settings(_env_file=None, SMTP_HOST="smtp.example.com", SMTP_USER="u", SMTP_PASS="p")
    assert Mailer(settings).send("a@b.com", "hi", "<p>hi</p>") is False


def test_verification_email_escapes_name():
    html = verification_email_html("123456", "<b>A</b>", "k-H")
    assert "123456" in html
    assert "&lt;b&gt;" in html
    assert "15 minutes" in html


def test_alembic_upgrade_creates_users(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    cfg = Config()
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", url)
    command.upgrade(cfg, "head")

    insp = inspect(create_engine(url))
    cols = {c["name"] for c in insp.get_columns("users")}
    assert {"email", "password_hash", "verification_code", "verification_code_expires"} <= cols
    unique = [ix for ix in insp.get_indexes("users") if ix["unique"]]
    assert any(ix["column_names"] == ["email"] for ix in unique)


def test_settings_only_declare_used_options():
    assert "FRONTEND_BASE_URL" not in Settings.model_fields
    assert {"DATABASE_URL", "ENVIRONMENT", "APP_NAME", "SMTP_HOST"} <= set(Settings.model_fields)
