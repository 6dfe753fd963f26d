"""
Tests for the configuration service.
"""
import os
import shutil
import tempfile
import unittest

from idse_signer.models.config import Config
from idse_signer.services.config_service import ConfigService
from idse_signer.services.container_store import ContainerStore
from idse_signer.services.material_sources import FileSource, StoreSource, UrlSource


class TestConfigService(unittest.TestCase):
    """Test cases for ConfigService."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = os.path.join(self.temp_dir, 'config.properties')
        self.service = ConfigService()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def _write(self, content):
        with open(self.config_path, 'w') as f:
            f.write(content)

    def test_load_full_config(self):
        log_path = os.path.join(self.temp_dir, 'signer.log')
        self._write(f"""
[portal]
base_url = https://portal.example/imss
challenge_path = Reto.idse
login_path = Entrar.idse
site_id = 12
location = https://portal.example/imss/

[container]
cipher = aes256

[network]
request_timeout_seconds = 45
material_timeout_seconds = 10

[host]
address = 127.0.0.1
port = 9090

[app]
log_level = DEBUG
log_file_path = {log_path}
""")
        config = self.service.load_config(self.config_path)

        self.assertEqual(config.portal_base_url, "https://portal.example/imss")
        self.assertEqual(config.challenge_url, "https://portal.example/imss/Reto.idse")
        self.assertEqual(config.login_url, "https://portal.example/imss/Entrar.idse")
        self.assertEqual(config.site_id, "12")
        self.assertEqual(config.container_cipher, "aes256")
        self.assertEqual(config.request_timeout_seconds, 45)
        self.assertEqual(config.material_timeout_seconds, 10)
        self.assertEqual(config.host_port, 9090)
        self.assertEqual(config.host_base_url, "http://127.0.0.1:9090")
        self.assertEqual(config.log_level, "DEBUG")
        self.assertIs(self.service.get_config(), config)

    def test_missing_sections_use_defaults(self):
        self._write("[network]\nrequest_timeout_seconds = 15\n")
        config = self.service.load_config(self.config_path)

        self.assertEqual(config.request_timeout_seconds, 15)
        self.assertEqual(config.challenge_url, "https://idse.imss.gob.mx/imss/SecuenciaFirma.idse")
        self.assertEqual(config.site_id, "9")

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            self.service.load_config(os.path.join(self.temp_dir, 'missing.properties'))

    def test_invalid_integer(self):
        self._write("[host]\nport = eighty\n")
        with self.assertRaises(ValueError):
            self.service.load_config(self.config_path)

    def test_invalid_cipher(self):
        self._write("[container]\ncipher = rc4\n")
        with self.assertRaises(ValueError):
            self.service.load_config(self.config_path)

    def test_invalid_base_url_fails_validation(self):
        self._write("[portal]\nbase_url = not-a-url\n")
        with self.assertRaises(ValueError) as ctx:
            self.service.load_config(self.config_path)
        self.assertIn("portal_base_url", str(ctx.exception))

    def test_get_config_before_load(self):
        with self.assertRaises(ValueError):
            self.service.get_config()

    def test_validation_warnings(self):
        config = Config(
            portal_base_url="http://portal.example/imss",
            host_address="0.0.0.0",
            log_file_path=os.path.join(self.temp_dir, 'signer.log'),
        )
        result = self.service.validate_config(config)

        self.assertTrue(result.is_valid)
        warned = {w.field for w in result.warnings}
        self.assertIn("portal_base_url", warned)
        self.assertIn("host_address", warned)
        self.assertIn("container_cipher", warned)

    def test_config_type_validation(self):
        with self.assertRaises(ValueError):
            Config(request_timeout_seconds=0)
        with self.assertRaises(ValueError):
            Config(host_port=70000)
        with self.assertRaises(ValueError):
            Config(log_level="VERBOSE")

    def test_create_default_config_file_loads(self):
        path = os.path.join(self.temp_dir, 'nested', 'default.properties')
        self.service.create_default_config_file(path)

        config = ConfigService(path).get_config()

        self.assertEqual(config, Config(log_file_path="logs/idse_signer.log"))


class TestCredentialsFromEnvironment(unittest.TestCase):
    """Test cases for ConfigService.load_credentials_from_env."""

    def setUp(self):
        self.service = ConfigService()

    def test_url_container(self):
        credentials = self.service.load_credentials_from_env({
            'IDSE_USER': 'usuario01',
            'IDSE_PASSWORD': 's3creto',
            'IDSE_PFX_URL': 'https://files.example/empresa.pfx',
        })

        self.assertEqual(credentials.username, 'usuario01')
        self.assertEqual(credentials.password, 's3creto')
        self.assertIsInstance(credentials.container_source, UrlSource)
        self.assertEqual(credentials.container_source.timeout, 20)

    def test_file_container(self):
        credentials = self.service.load_credentials_from_env({
            'IDSE_USER': 'usuario01',
            'IDSE_PASSWORD': 's3creto',
            'IDSE_PFX_URL': 'certs/empresa.pfx',
        })
        self.assertIsInstance(credentials.container_source, FileSource)

    def test_store_container(self):
        store = ContainerStore()
        url = store.put("abc", b"pfx")
        credentials = self.service.load_credentials_from_env({
            'IDSE_USER': 'usuario01',
            'IDSE_PASSWORD': 's3creto',
            'IDSE_PFX_URL': url,
        }, store=store)
        self.assertIsInstance(credentials.container_source, StoreSource)

    def test_missing_variables(self):
        with self.assertRaises(ValueError) as ctx:
            self.service.load_credentials_from_env({'IDSE_USER': 'usuario01'})
        self.assertIn('IDSE_PASSWORD', str(ctx.exception))
        self.assertIn('IDSE_PFX_URL', str(ctx.exception))


if __name__ == '__main__':
    unittest.main()
