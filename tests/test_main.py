"""Tests for command line parsing and startup validation."""

import pytest

from web3_gateway.errors import AmbiguousRouting, ConfigurationError, InvalidAddress, InvalidDomain
from web3_gateway.main import build_parser, main, print_banner, validate_arguments
from web3_gateway.shared.config import Config, get_config

from conftest import OTHER_ADDRESS, SITE_ADDRESS


def parse(*argv):
    return build_parser().parse_args(list(argv))


class TestArguments:
    """Command line validation."""

    def test_defaults(self):
        args = parse(f"web3://{SITE_ADDRESS}", "-g", "gw.example")
        registry = validate_arguments(args)

        assert registry.single_tenant
        assert args.global_web3_http_gateway_dns_domain == "gw.example"
        assert not args.lets_encrypt_enable_https

    def test_global_gateway_disabled(self):
        args = parse(f"web3://{SITE_ADDRESS}", "-g", "")
        validate_arguments(args)
        assert args.global_web3_http_gateway_dns_domain is None

    def test_invalid_global_gateway(self):
        with pytest.raises(InvalidDomain):
            validate_arguments(parse(f"web3://{SITE_ADDRESS}", "-g", "not_a_domain"))

    def test_invalid_address(self):
        with pytest.raises(InvalidAddress):
            validate_arguments(parse(f"web3://{SITE_ADDRESS}/index.html"))

    def test_ambiguous_sites(self):
        with pytest.raises(AmbiguousRouting):
            validate_arguments(parse(f"web3://{SITE_ADDRESS}", f"web3://{OTHER_ADDRESS}=other.org"))

    def test_https_requires_email(self):
        with pytest.raises(ConfigurationError):
            validate_arguments(parse(f"web3://{SITE_ADDRESS}=site.com", "--lets-encrypt-enable-https",
                                     "--lets-encrypt-email", ""))

    def test_https_requires_dns_domains(self):
        with pytest.raises(AmbiguousRouting):
            validate_arguments(parse(f"web3://{SITE_ADDRESS}", "--lets-encrypt-enable-https",
                                     "--lets-encrypt-email", "admin@site.com"))

    def test_invalid_email(self):
        with pytest.raises(ConfigurationError):
            validate_arguments(parse(f"web3://{SITE_ADDRESS}=site.com", "--lets-encrypt-email", "admin"))

    def test_https_configuration(self):
        args = parse(f"web3://{SITE_ADDRESS}=site.com", "web3://ocweb.eth:10=ocweb.example.com",
                     "--lets-encrypt-enable-https", "--lets-encrypt-email", "admin@site.com",
                     "--https-port", "8443", "-p", "8080", "--force-cache")
        registry = validate_arguments(args)

        assert registry.domains == ["site.com", "ocweb.example.com"]
        assert args.https_port == 8443
        assert args.port == 8080
        assert args.force_cache

    def test_invalid_port(self):
        with pytest.raises(SystemExit):
            parse(f"web3://{SITE_ADDRESS}", "-p", "70000")

    def test_at_least_one_site(self):
        with pytest.raises(SystemExit):
            parse()


class TestMain:
    """Process-level behaviour."""

    def test_invalid_configuration_exits_with_error(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([f"web3://{SITE_ADDRESS}=bad_domain"])

        assert exc_info.value.code == 1
        assert capsys.readouterr().err.startswith("Error: ")

    def test_invalid_environment_exits_with_error(self, capsys, monkeypatch):
        monkeypatch.setattr(Config, "RENEWAL_THRESHOLD_DAYS", 0)
        get_config.cache_clear()
        try:
            with pytest.raises(SystemExit) as exc_info:
                main([f"web3://{SITE_ADDRESS}"])
        finally:
            get_config.cache_clear()

        assert exc_info.value.code == 1
        assert capsys.readouterr().err.startswith("Error: Configuration errors: RENEWAL_THRESHOLD_DAYS")

    def test_banner(self, capsys, multi_site_registry):
        print_banner(multi_site_registry)

        assert capsys.readouterr().out == (
            "Serving the following web3:// websites:\n"
            f" - site.com => web3://{SITE_ADDRESS}\n"
            f" - other.org => web3://{OTHER_ADDRESS}:5\n"
            "\n"
        )
