"""Test configuration loading and validation"""

import yaml

from gmusic.config.session import SessionHandle
from gmusic.config.settings import MAX_STREAM_WORKERS, Settings

from conftest import T0


class TestSettings:
    """Test Settings"""

    def test_defaults(self, temp_dir, monkeypatch):
        monkeypatch.delenv('GMUSIC_WIRE_FORMAT', raising=False)
        settings = Settings(config_path=str(temp_dir / "missing.yaml"))

        assert settings.service.page_size == 1000
        assert settings.stream.max_workers == MAX_STREAM_WORKERS
        assert settings.get_proxies() is None
        assert settings.logging.show_progress is False

    def test_yaml_file(self, temp_dir):
        path = temp_dir / "config.yaml"
        path.write_text(yaml.dump({
            'service': {'page_size': 250, 'wire_format': 'jsarray'},
            'network': {'proxy': 'http://proxy:3128'},
            'unknown_section': {'x': 1},
        }), encoding="utf-8")

        settings = Settings(config_path=str(path))

        assert settings.service.page_size == 250
        assert settings.service.wire_format == 'jsarray'
        assert settings.get_proxies() == {'http': 'http://proxy:3128', 'https': 'http://proxy:3128'}

    def test_environment_overrides_file(self, temp_dir, monkeypatch):
        path = temp_dir / "config.yaml"
        path.write_text(yaml.dump({'service': {'wire_format': 'json'}}), encoding="utf-8")
        monkeypatch.setenv('GMUSIC_WIRE_FORMAT', 'jsarray')
        monkeypatch.setenv('GMUSIC_CACHE_DIR', str(temp_dir / "elsewhere"))

        settings = Settings(config_path=str(path))

        assert settings.service.wire_format == 'jsarray'
        assert settings.get_cache_directory() == temp_dir / "elsewhere"

    def test_validation(self, settings):
        assert settings.validate()

        settings.service.wire_format = 'xml'
        settings.service.page_size = 0
        settings.stream.max_workers = 8

        errors = settings.get_validation_errors()
        assert len(errors) == 3
        assert not settings.validate()

    def test_save_config(self, settings, temp_dir):
        settings.service.page_size = 500
        path = temp_dir / "saved" / "config.yaml"

        settings.save_config(str(path))

        reloaded = Settings(config_path=str(path))
        assert reloaded.service.page_size == 500


class TestSessionHandle:
    """Test SessionHandle"""

    def test_authenticated(self, session):
        assert session.is_authenticated
        assert session.auth_headers() == {'Authorization': 'GoogleLogin auth=token-123'}

    def test_anonymous(self):
        anonymous = SessionHandle.anonymous()

        assert not anonymous.is_authenticated
        assert anonymous.auth_headers() == {}

    def test_expired(self):
        assert not SessionHandle(auth_token="t", expires=T0).is_authenticated

    def test_repr_hides_token(self, session):
        assert "token-123" not in repr(session)

    def test_with_cookies(self, session):
        extended = session.with_cookies({'sjsaid': 'abc'})

        assert extended.cookies == {'sjsaid': 'abc'}
        assert session.cookies == {}
        assert extended.session_id == session.session_id
