"""Request orchestration for the token exchange pipeline."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from .auth import IdentityVerifier, JwksCache
from .authority import AuthorityResolver
from .config import BrokerConfig
from .errors import AccessDenied, ClientError, InvalidRequest
from .github import GitHubAppClient
from .issuer import TokenIssuer
from .models import AccessRequest, BrokerResponse, IssuedToken
from .policy import PolicyEvaluator, PolicyFetcher

logger = logging.getLogger(__name__)

INTERNAL_ERROR_BODY = {
    "error": {
        "name": "InternalServerError",
        "message": "Internal server error",
    }
}


class Stage(str, Enum):
    """Progress of a single exchange; it only ever moves forward."""

    RECEIVED = "received"
    IDENTITY_VERIFIED = "identity_verified"
    AUTHORITY_RESOLVED = "authority_resolved"
    POLICY_EVALUATED = "policy_evaluated"
    TOKEN_ISSUED = "token_issued"
    RESPONDED = "responded"
    ERRORED = "errored"


class AccessBroker:
    """Exchanges identity tokens for repository scoped access tokens.

    Stages run strictly in order and the first failure ends the exchange.
    Nothing is retried.
    """

    def __init__(
        self,
        config: BrokerConfig,
        verifier: IdentityVerifier,
        resolver: AuthorityResolver,
        fetcher: PolicyFetcher,
        evaluator: PolicyEvaluator,
        issuer: TokenIssuer,
    ) -> None:
        self.config = config
        self.verifier = verifier
        self.resolver = resolver
        self.fetcher = fetcher
        self.evaluator = evaluator
        self.issuer = issuer

    @classmethod
    def from_config(
        cls, config: BrokerConfig, github: Optional[GitHubAppClient] = None
    ) -> "AccessBroker":
        """Wire up the pipeline around the App credential in ``config``."""
        github = github or GitHubAppClient.from_config(config)
        return cls(
            config=config,
            verifier=IdentityVerifier(
                config.identity,
                JwksCache(
                    ttl=config.identity.jwks_cache_ttl,
                    timeout=config.http_timeout,
                    min_refetch_interval=config.identity.jwks_min_refetch_interval,
                ),
            ),
            resolver=AuthorityResolver(github),
            fetcher=PolicyFetcher(github, config.access_file_location),
            evaluator=PolicyEvaluator(),
            issuer=TokenIssuer(github),
        )

    def exchange(self, id_token: Optional[str], repo: Optional[str]) -> IssuedToken:
        """Run the pipeline and return the issued token.

        Raises:
            ClientError: for caller caused failures.
            IssuanceError: when GitHub refuses to mint the final token.
        """
        stage = Stage.RECEIVED
        try:
            claims = self.verifier.verify(
                id_token or "",
                issuer=self.config.identity.issuer,
                allow_expired=self.config.allow_expired,
            )
            stage = Stage.IDENTITY_VERIFIED

            if not repo:
                raise InvalidRequest("repo - must be provided")
            request = AccessRequest.resolve(claims.repository, repo)
            logger.info(f"Get access token for {request.source_repo} to {request.target_repo}")

            authority = self.resolver.resolve(request.target_repo)
            stage = Stage.AUTHORITY_RESOLVED

            policy = self.fetcher.fetch(request.target_repo, authority)
            permissions = self.evaluator.evaluate(
                policy, request.source_repo, request.target_repo, authority
            )
            stage = Stage.POLICY_EVALUATED
            if not permissions:
                raise AccessDenied()

            token = self.issuer.issue(request.target_repo, authority, permissions)
            stage = Stage.TOKEN_ISSUED
            logger.info(
                f"Issued token for {request.source_repo} to {request.target_repo} "
                f"with permissions {sorted(token.permissions.items())}"
            )
            return token
        except Exception:
            logger.debug(f"Exchange {Stage.ERRORED.value} after stage {stage.value}")
            raise

    def handle(self, id_token: Optional[str], repo: Optional[str]) -> BrokerResponse:
        """Run the exchange and map its outcome to a response."""
        try:
            token = self.exchange(id_token, repo)
        except ClientError as exc:
            logger.debug(f"Client error: {exc.error_name} {exc.message}", exc_info=True)
            return BrokerResponse(
                status_code=exc.http_status,
                body={"error": {"name": exc.error_name, "message": exc.message}},
            )
        except Exception:
            logger.error("Token exchange failed", exc_info=True)
            return BrokerResponse(status_code=500, body=INTERNAL_ERROR_BODY)
        logger.debug(f"Exchange {Stage.RESPONDED.value} for {token.repo}")
        return BrokerResponse(status_code=200, body=token.to_response())
