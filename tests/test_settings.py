from certnorm.settings import Settings

_VARS = (
    "CERTNORM_LOG_LEVEL",
    "CERTNORM_LOG_FILE",
    "CERTNORM_INSTALL_DIR",
    "CERTNORM_EXPIRY_WARN_DAYS",
    "CERTNORM_KEY_OWNER",
    "CERTNORM_RELOAD_CMD",
    "CERTNORM_HEALTH_ENDPOINTS",
)


def test_settings_defaults(monkeypatch):
    for v in _VARS:
        monkeypatch.delenv(v, raising=False)

    s = Settings.from_env()
    assert s.LOG_LEVEL == "INFO"
    assert s.LOG_FILE is None
    assert s.INSTALL_DIR == "/opt/certnorm"
    assert s.EXPIRY_WARN_DAYS == 30
    assert s.KEY_OWNER is None
    assert s.RELOAD_CMD == []
    assert s.HEALTH_ENDPOINTS == []


def test_settings_parsing(monkeypatch, tmp_path):
    monkeypatch.setenv("CERTNORM_LOG_LEVEL", "debug")
    monkeypatch.setenv("CERTNORM_LOG_FILE", str(tmp_path / "certnorm.log"))
    monkeypatch.setenv("CERTNORM_INSTALL_DIR", str(tmp_path))
    monkeypatch.setenv("CERTNORM_EXPIRY_WARN_DAYS", "14")
    monkeypatch.setenv("CERTNORM_KEY_OWNER", "101:102")
    monkeypatch.setenv("CERTNORM_RELOAD_CMD", "docker compose restart 'tls proxy'")
    monkeypatch.setenv("CERTNORM_HEALTH_ENDPOINTS", "localhost:443, localhost:8443,")

    s = Settings.from_env()
    assert s.LOG_LEVEL == "DEBUG"
    assert s.LOG_FILE == str(tmp_path / "certnorm.log")
    assert s.INSTALL_DIR == str(tmp_path)
    assert s.EXPIRY_WARN_DAYS == 14
    assert s.KEY_OWNER == (101, 102)
    assert s.RELOAD_CMD == ["docker", "compose", "restart", "tls proxy"]
    assert s.HEALTH_ENDPOINTS == ["localhost:443", "localhost:8443"]


def test_settings_bad_values_fall_back(monkeypatch):
    monkeypatch.setenv("CERTNORM_EXPIRY_WARN_DAYS", "soon")
    monkeypatch.setenv("CERTNORM_KEY_OWNER", "nginx")
    assert Settings.from_env().EXPIRY_WARN_DAYS == 30
    assert Settings.from_env().KEY_OWNER is None

    monkeypatch.setenv("CERTNORM_EXPIRY_WARN_DAYS", "0")
    monkeypatch.setenv("CERTNORM_KEY_OWNER", "0")
    s = Settings.from_env()
    assert s.EXPIRY_WARN_DAYS == 30
    assert s.KEY_OWNER == (0, 0)
