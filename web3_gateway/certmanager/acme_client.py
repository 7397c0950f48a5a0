"""ACME protocol client issuing one certificate per served domain."""

import logging
from contextlib import ExitStack
from datetime import datetime, timedelta
from typing import Tuple

import josepy as jose
from acme import challenges, client, errors, messages
from acme.challenges import HTTP01Response
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from ..errors import CertificateIssuanceError
from ..shared.config import Config
from .challenges import ChallengeRegistry

logger = logging.getLogger(__name__)

USER_AGENT = 'web3-http-gateway'


class ACMEClient:
    """ACME protocol client for certificate issuance.

    Blocking: meant to be run in a worker thread.
    """

    def __init__(self, challenges: ChallengeRegistry, directory_url: str = None,
                 key_size: int = None, timeout_seconds: int = None):
        self.challenges = challenges
        self.directory_url = directory_url or Config.ACME_DIRECTORY_URL
        self.key_size = key_size or Config.RSA_KEY_SIZE
        self.timeout_seconds = timeout_seconds or Config.ACME_TIMEOUT_SECONDS

    def _generate_rsa_key(self) -> Tuple[rsa.RSAPrivateKey, str]:
        """Generate RSA key pair."""
        private_key = rsa.generate_private_key(
            public_exponent=65537,
            key_size=self.key_size,
        )

        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        ).decode('utf-8')

        return private_key, private_pem

    def _create_acme_client(self, account_key: jose.JWKRSA) -> client.ClientV2:
        """Create ACME client instance."""
        net = client.ClientNetwork(account_key, user_agent=USER_AGENT)
        directory = messages.Directory.from_json(net.get(self.directory_url).json())
        return client.ClientV2(directory, net=net)

    def _register(self, acme_client: client.ClientV2, email: str) -> messages.RegistrationResource:
        """Register a new account, agreeing to the terms of service."""
        new_reg = messages.NewRegistration(
            contact=(f"mailto:{email}",),
            terms_of_service_agreed=True
        )
        regr = acme_client.new_account(new_reg)
        logger.info(f"Registered new ACME account for {email}")
        return regr

    def _create_csr(self, private_key, domain: str) -> bytes:
        """Create Certificate Signing Request in PEM format."""
        builder = x509.CertificateSigningRequestBuilder()

        builder = builder.subject_name(x509.Name([
            x509.NameAttribute(NameOID.COMMON_NAME, domain)
        ]))
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(domain)]),
            critical=False
        )

        csr = builder.sign(private_key, hashes.SHA256())

        # ACME expects PEM, not DER
        return csr.public_bytes(serialization.Encoding.PEM)

    def _select_http01(self, authz: messages.AuthorizationResource) -> messages.ChallengeBody:
        for challenge in authz.body.challenges:
            if isinstance(challenge.chall, challenges.HTTP01):
                return challenge
        raise ValueError(f"No HTTP-01 challenge offered for {authz.body.identifier.value}")

    def issue_certificate(self, domain: str, email: str) -> Tuple[str, str]:
        """Run the whole HTTP-01 issuance flow for a domain.

        Args:
            domain: Domain to certify
            email: Contact email of the ACME account

        Returns:
            ``(private_key_pem, fullchain_pem)``

        Raises:
            CertificateIssuanceError: on any failure; nothing is persisted
        """
        logger.info(f"Requesting a certificate for {domain} from {self.directory_url}")
        deadline = datetime.now() + timedelta(seconds=self.timeout_seconds)

        try:
            # Fresh account key for every attempt
            account_key, _ = self._generate_rsa_key()
            acme_client = self._create_acme_client(jose.JWKRSA(key=account_key))
            self._register(acme_client, email)

            domain_key, domain_key_pem = self._generate_rsa_key()
            order = acme_client.new_order(self._create_csr(domain_key, domain))

            with ExitStack() as stack:
                for authz in order.authorizations:
                    challenge = self._select_http01(authz)
                    response, validation = challenge.chall.response_and_validation(acme_client.net.key)
                    if not isinstance(response, HTTP01Response):
                        raise ValueError(f"Invalid response type: {type(response)}, expected HTTP01Response")

                    # Responder stays up until the order is finalized or fails
                    stack.enter_context(self.challenges.register(challenge.chall.encode('token'), validation))
                    acme_client.answer_challenge(challenge, response)

                order = acme_client.poll_and_finalize(order, deadline=deadline)

        except errors.TimeoutError as e:
            raise CertificateIssuanceError(domain, f"timed out after {self.timeout_seconds}s") from e
        except errors.ValidationError as e:
            details = '; '.join(
                str(challenge.error)
                for authz in e.failed_authzrs
                for challenge in authz.body.challenges
                if challenge.error
            )
            raise CertificateIssuanceError(domain, f"challenge validation failed: {details}") from e
        except Exception as e:
            raise CertificateIssuanceError(domain, f"{type(e).__name__}: {e}") from e

        logger.info(f"New certificate for {domain} issued")
        return domain_key_pem, order.fullchain_pem
