"""Main entry point for the web3:// HTTP gateway."""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from hypercorn.asyncio import serve
from hypercorn.config import Config as HypercornConfig

from .certmanager import (
    ACMEClient,
    CertificateManager,
    CertificateScheduler,
    CertificateStore,
    ChallengeRegistry,
    HTTPSServer,
    SNIContextProvider,
)
from .errors import ConfigurationError, GatewayError
from .proxy import GatewayHandler, PageCache, UpstreamGatewayResolver, create_gateway_app
from .shared.config import Config, EMAIL_PATTERN, get_config
from .shared.python_logger_config import setup_python_logging
from .sites import SiteRegistry, validate_dns_domain

logger = logging.getLogger(__name__)


def port_number(value: str) -> int:
    port = int(value)
    if not 0 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"Invalid port: {value}")
    return port


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="web3-http-gateway",
        description="Serve web3:// websites as regular HTTP(S) websites",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve a single website on port 8080, for any hostname
  web3-http-gateway web3://0x4e1f41613c9084fdb9e34e11fae9412427480e56

  # Serve two websites, each on its own domain, with Let's Encrypt certificates
  web3-http-gateway --lets-encrypt-enable-https --lets-encrypt-email admin@example.com \\
      web3://0x4e1f41613c9084fdb9e34e11fae9412427480e56=terraformnavigator.example.com \\
      web3://ocweb.eth:10=ocweb.example.com

Environment Variables:
  PORT                                 - HTTP port (default: 8080)
  HTTPS_PORT                           - HTTPS port (default: 443)
  GLOBAL_WEB3_HTTP_GATEWAY_DNS_DOMAIN  - Gateway used for other web3:// links
  LETSENCRYPT_ENABLE_HTTPS             - Enable HTTPS (true/false)
  LETSENCRYPT_EMAIL                    - Let's Encrypt account email
  FORCE_CACHE                          - Cache all pages forever (true/false)
  UPSTREAM_GATEWAY_DNS_DOMAIN          - Gateway fetching the web3:// content
  GATEWAY_CONFIG_DIR                   - Where certificates are stored
        """
    )

    parser.add_argument(
        "web3_urls",
        nargs="+",
        metavar="web3://address[=dns-domain]",
        help="web3:// website to serve, optionally with the DNS domain serving it"
    )
    parser.add_argument(
        "-p", "--port",
        type=port_number,
        default=Config.HTTP_PORT,
        help=f"HTTP port (default: {Config.HTTP_PORT}, env: PORT)"
    )
    parser.add_argument(
        "--https-port",
        type=port_number,
        default=Config.HTTPS_PORT,
        help=f"HTTPS port (default: {Config.HTTPS_PORT}, env: HTTPS_PORT)"
    )
    parser.add_argument(
        "--host",
        default=Config.SERVER_HOST,
        help=f"Host to bind to (default: {Config.SERVER_HOST}, env: SERVER_HOST)"
    )
    parser.add_argument(
        "-g", "--global-web3-http-gateway-dns-domain",
        default=Config.GLOBAL_WEB3_HTTP_GATEWAY_DNS_DOMAIN,
        help="Gateway used to convert web3:// links to websites not served here, "
             "e.g. web3://vitalikblog.eth => https://vitalikblog.eth.1.<gateway domain> "
             "(empty to disable, env: GLOBAL_WEB3_HTTP_GATEWAY_DNS_DOMAIN)"
    )
    parser.add_argument(
        "--lets-encrypt-enable-https",
        action="store_true",
        default=Config.LETSENCRYPT_ENABLE_HTTPS,
        help="Serve HTTPS with Let's Encrypt certificates (env: LETSENCRYPT_ENABLE_HTTPS)"
    )
    parser.add_argument(
        "--lets-encrypt-email",
        default=Config.LETSENCRYPT_EMAIL,
        help="Email of the Let's Encrypt account (env: LETSENCRYPT_EMAIL)"
    )
    parser.add_argument(
        "--lets-encrypt-staging",
        action="store_true",
        default=Config.LETSENCRYPT_STAGING,
        help="Use the Let's Encrypt staging environment (env: LETSENCRYPT_STAGING)"
    )
    parser.add_argument(
        "--force-cache",
        action="store_true",
        default=Config.FORCE_CACHE,
        help="Cache every web3:// page indefinitely, even if the website does not ask for it. "
             "Only do this if you are aware of the consequences (env: FORCE_CACHE)"
    )
    parser.add_argument(
        "--upstream-gateway-dns-domain",
        default=Config.UPSTREAM_GATEWAY_DNS_DOMAIN,
        help=f"Gateway used to fetch the web3:// content "
             f"(default: {Config.UPSTREAM_GATEWAY_DNS_DOMAIN}, env: UPSTREAM_GATEWAY_DNS_DOMAIN)"
    )
    parser.add_argument(
        "--log-level",
        default=Config.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help=f"Logging level (default: {Config.LOG_LEVEL}, env: LOG_LEVEL)"
    )
    return parser


def validate_arguments(args: argparse.Namespace) -> SiteRegistry:
    """Check the command line and build the registry of served sites.

    Raises:
        GatewayError: the configuration cannot be served
    """
    if args.global_web3_http_gateway_dns_domain:
        args.global_web3_http_gateway_dns_domain = validate_dns_domain(args.global_web3_http_gateway_dns_domain)
    else:
        args.global_web3_http_gateway_dns_domain = None

    args.upstream_gateway_dns_domain = validate_dns_domain(args.upstream_gateway_dns_domain)

    if args.lets_encrypt_email and not EMAIL_PATTERN.match(args.lets_encrypt_email):
        raise ConfigurationError(f"Invalid email : {args.lets_encrypt_email}")

    if args.lets_encrypt_enable_https and not args.lets_encrypt_email:
        raise ConfigurationError("The email must be set when enabling HTTPS with Let's Encrypt")

    return SiteRegistry.from_arguments(args.web3_urls, tls_enabled=args.lets_encrypt_enable_https)


def print_banner(registry: SiteRegistry) -> None:
    print("Serving the following web3:// websites:")
    for line in registry.describe():
        print(f" - {line}")
    print("")


def install_signal_handlers(shutdown_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown_event.set)
        except NotImplementedError:
            # Windows event loops
            signal.signal(sig, lambda *_: shutdown_event.set())


async def run_gateway(args: argparse.Namespace, registry: SiteRegistry) -> None:
    """Run the HTTP listener, and the HTTPS listener with its renewal loop if enabled."""
    shutdown_event = asyncio.Event()
    install_signal_handlers(shutdown_event)

    challenges = ChallengeRegistry()
    resolver = UpstreamGatewayResolver(
        args.upstream_gateway_dns_domain,
        connect_timeout=float(Config.UPSTREAM_CONNECT_TIMEOUT),
        request_timeout=float(Config.UPSTREAM_REQUEST_TIMEOUT),
    )
    handler = GatewayHandler(
        registry,
        resolver,
        args.global_web3_http_gateway_dns_domain,
        https_enabled=args.lets_encrypt_enable_https,
        page_cache=PageCache() if args.force_cache else None,
    )
    app = create_gateway_app(handler, challenges)

    http_config = HypercornConfig()
    http_config.bind = [f"{args.host}:{args.port}"]
    http_config.loglevel = args.log_level

    # The HTTP listener must be up before issuance, it answers the ACME challenges
    logger.info(f"HTTP Server running on port {args.port}")
    tasks = [asyncio.create_task(serve(app, http_config, shutdown_trigger=shutdown_event.wait))]

    manager: Optional[CertificateManager] = None
    scheduler: Optional[CertificateScheduler] = None
    try:
        if args.lets_encrypt_enable_https:
            ssl_provider = SNIContextProvider()
            acme_client = ACMEClient(
                challenges,
                directory_url=Config.ACME_STAGING_URL if args.lets_encrypt_staging else Config.ACME_DIRECTORY_URL,
            )
            manager = CertificateManager(CertificateStore(), acme_client, args.lets_encrypt_email)
            https_server = HTTPSServer(app, manager, ssl_provider, host=args.host, port=args.https_port)

            await https_server.load_certificates(registry.domains)

            scheduler = CertificateScheduler(manager, ssl_provider, registry.domains)
            scheduler.start()

            tasks.append(asyncio.create_task(
                https_server.serve(shutdown_trigger=shutdown_event, log_level=args.log_level)))

        await asyncio.gather(*tasks)
    finally:
        shutdown_event.set()
        await asyncio.gather(*tasks, return_exceptions=True)
        if scheduler:
            scheduler.stop()
        if manager:
            manager.shutdown()
        await resolver.aclose()


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for CLI execution."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_python_logging(args.log_level)

    try:
        get_config()
        registry = validate_arguments(args)
    except (GatewayError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print_banner(registry)

    try:
        asyncio.run(run_gateway(args, registry))
    except KeyboardInterrupt:
        logger.info("Shutting down web3:// HTTP gateway (interrupted)")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Failed to run web3:// HTTP gateway: {e}", exc_info=True)
        print(f"ERROR: Failed to run web3:// HTTP gateway: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
