from __future__ import annotations

import tempfile
import unittest

from mgmt_endpoint import properties as props
from mgmt_endpoint.config import ConfigurationError, settings_from_dict
from mgmt_endpoint.endpoint import (
    CLIENT_SOCKET_FACTORY,
    NAMING_SOCKET_FACTORY,
    SERVER_SOCKET_FACTORY,
    Disabled,
    LegacyTls,
    StructuredTls,
    configure_socket_factories,
    resolve_tls_source,
)
from mgmt_endpoint.factories import (
    PlainClientSocketFactory,
    PlainServerSocketFactory,
    SslClientSocketFactory,
    SslServerSocketFactory,
)
from mgmt_endpoint.test.certs import write_self_signed_stores


PROTOCOLS = ["TLSv1.2", "TLSv1.3"]
CIPHERS = ["ECDHE-RSA-AES256-GCM-SHA384", "ECDHE-RSA-AES128-GCM-SHA256"]


class TestConfigureSocketFactories(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls._tmp = tempfile.TemporaryDirectory()
        cls.keystore, cls.truststore = write_self_signed_stores(cls._tmp.name)

    @classmethod
    def tearDownClass(cls) -> None:
        cls._tmp.cleanup()

    def _settings(self, enabled: bool = True, **extra):
        block = {
            "enabled": enabled,
            "keystore": str(self.keystore),
            "truststore": str(self.truststore),
            "accepted_protocols": PROTOCOLS,
            "cipher_suites": CIPHERS,
        }
        block.update(extra)
        return settings_from_dict({"host": "127.0.0.1", "port": 0, "encryption_options": block})

    def test_structured_options_build_tls_factories(self) -> None:
        environ: dict = {}
        env = configure_socket_factories("127.0.0.1", False, self._settings(), environ)

        self.assertIsInstance(env[SERVER_SOCKET_FACTORY], SslServerSocketFactory)
        self.assertTrue(env[SERVER_SOCKET_FACTORY].tls)
        self.assertIsInstance(env[CLIENT_SOCKET_FACTORY], SslClientSocketFactory)
        self.assertIs(env[NAMING_SOCKET_FACTORY], env[CLIENT_SOCKET_FACTORY])
        self.assertEqual(environ[props.CLIENT_ENABLED_PROTOCOLS], "TLSv1.2,TLSv1.3")
        self.assertEqual(
            environ[props.CLIENT_ENABLED_CIPHER_SUITES],
            "ECDHE-RSA-AES256-GCM-SHA384,ECDHE-RSA-AES128-GCM-SHA256",
        )
        self.assertNotIn(props.REMOTE_SSL, environ)

    def test_default_lists_published_when_not_configured(self) -> None:
        environ: dict = {}
        settings = settings_from_dict(
            {
                "encryption_options": {
                    "enabled": True,
                    "keystore": str(self.keystore),
                    "truststore": str(self.truststore),
                }
            }
        )
        configure_socket_factories("127.0.0.1", False, settings, environ)
        self.assertEqual(environ[props.CLIENT_ENABLED_PROTOCOLS], "TLSv1.2,TLSv1.3")
        self.assertTrue(environ[props.CLIENT_ENABLED_CIPHER_SUITES])

    def test_disabled_builds_plain_factories_and_leaves_properties(self) -> None:
        environ = {props.CLIENT_ENABLED_PROTOCOLS: "TLSv1.3", props.CLIENT_ENABLED_CIPHER_SUITES: "X"}
        env = configure_socket_factories("127.0.0.1", True, self._settings(enabled=False), environ)

        server = env[SERVER_SOCKET_FACTORY]
        self.assertIsInstance(server, PlainServerSocketFactory)
        self.assertFalse(server.tls)
        self.assertTrue(server.local_only)
        self.assertIsInstance(env[CLIENT_SOCKET_FACTORY], PlainClientSocketFactory)
        self.assertIs(env[NAMING_SOCKET_FACTORY], env[CLIENT_SOCKET_FACTORY])
        self.assertEqual(environ, {props.CLIENT_ENABLED_PROTOCOLS: "TLSv1.3", props.CLIENT_ENABLED_CIPHER_SUITES: "X"})

    def test_disabled_block_with_malformed_fields_still_plain(self) -> None:
        settings = settings_from_dict(
            {"encryption_options": {"enabled": False, "accepted_protocols": [], "keystore_password": 1234}}
        )
        environ: dict = {}
        env = configure_socket_factories("127.0.0.1", False, settings, environ)
        self.assertIsInstance(env[SERVER_SOCKET_FACTORY], PlainServerSocketFactory)
        self.assertIsInstance(env[CLIENT_SOCKET_FACTORY], PlainClientSocketFactory)
        self.assertEqual(environ, {})

    def test_mistyped_enabled_switch_fails_startup(self) -> None:
        settings = self._settings(enabled="ture")
        with self.assertRaises(ConfigurationError):
            configure_socket_factories("127.0.0.1", False, settings, {})

    def test_local_only_applies_to_tls_factory(self) -> None:
        env = configure_socket_factories("0.0.0.0", True, self._settings(), {})
        server = env[SERVER_SOCKET_FACTORY]
        self.assertTrue(server.local_only)
        self.assertTrue(server.admits(("127.0.0.1", 40000)))
        self.assertFalse(server.admits(("198.51.100.4", 40000)))

    def test_legacy_and_structured_conflict(self) -> None:
        environ = {props.REMOTE_SSL: "true"}
        with self.assertRaises(ConfigurationError):
            configure_socket_factories("127.0.0.1", False, self._settings(), environ)
        self.assertNotIn(props.CLIENT_ENABLED_PROTOCOLS, environ)

    def test_conflict_reported_even_with_unusable_material(self) -> None:
        settings = self._settings(keystore="/nonexistent/keystore.pem")
        with self.assertRaises(ConfigurationError):
            configure_socket_factories("127.0.0.1", False, settings, {props.REMOTE_SSL: "true"})

    def test_incomplete_structured_config(self) -> None:
        settings = settings_from_dict({"encryption_options": {"enabled": True, "keystore": str(self.keystore)}})
        with self.assertRaises(ConfigurationError):
            configure_socket_factories("127.0.0.1", False, settings, {})

    def test_tls_context_failure_propagates(self) -> None:
        settings = self._settings(keystore=str(self.keystore) + ".missing")
        with self.assertRaises(FileNotFoundError):
            configure_socket_factories("127.0.0.1", False, settings, {})

    def test_legacy_path_uses_properties(self) -> None:
        environ = {
            props.REMOTE_SSL: "true",
            props.SSL_KEYSTORE: str(self.keystore),
            props.SSL_TRUSTSTORE: str(self.truststore),
            props.REMOTE_SSL_ENABLED_PROTOCOLS: "TLSv1.2,TLSv1.3",
        }
        env = configure_socket_factories("127.0.0.1", False, self._settings(enabled=False), environ)
        self.assertIsInstance(env[SERVER_SOCKET_FACTORY], SslServerSocketFactory)
        self.assertIsInstance(env[CLIENT_SOCKET_FACTORY], SslClientSocketFactory)
        self.assertEqual(environ[props.CLIENT_ENABLED_PROTOCOLS], "TLSv1.2,TLSv1.3")
        self.assertNotIn(props.CLIENT_ENABLED_CIPHER_SUITES, environ)

    def test_repeated_configuration_is_stable(self) -> None:
        environ: dict = {}
        first = configure_socket_factories("127.0.0.1", True, self._settings(), environ)
        published = dict(environ)
        second = configure_socket_factories("127.0.0.1", True, self._settings(), environ)
        self.assertEqual(environ, published)
        self.assertEqual(type(first[SERVER_SOCKET_FACTORY]), type(second[SERVER_SOCKET_FACTORY]))
        self.assertEqual(first[SERVER_SOCKET_FACTORY].bind_address, second[SERVER_SOCKET_FACTORY].bind_address)
        self.assertEqual(first[SERVER_SOCKET_FACTORY].local_only, second[SERVER_SOCKET_FACTORY].local_only)


class TestResolveTlsSource(unittest.TestCase):
    def test_sources(self) -> None:
        disabled = settings_from_dict({})
        enabled = settings_from_dict(
            {"encryption_options": {"enabled": True, "keystore": "ks.pem", "truststore": "ts.pem"}}
        )
        self.assertIsInstance(resolve_tls_source(disabled, {}), Disabled)
        self.assertIsInstance(resolve_tls_source(disabled, {props.REMOTE_SSL: "true"}), LegacyTls)
        source = resolve_tls_source(enabled, {props.REMOTE_SSL: "false"})
        self.assertIsInstance(source, StructuredTls)
        self.assertEqual(source.options.keystore, "ks.pem")
        with self.assertRaises(ConfigurationError):
            resolve_tls_source(enabled, {props.REMOTE_SSL: "true"})


if __name__ == "__main__":
    unittest.main()
