from __future__ import annotations


class DomainError(Exception):
    """Base para erros de dominio."""


class AuthError(DomainError):
    """Base para erros do fluxo de autenticacao."""


class InvalidCredentialsError(AuthError):
    """Email ou senha invalidos."""


class InvalidOrExpiredCodeError(AuthError):
    """Codigo de uso unico invalido, expirado ou ja consumido."""


class NoStoredCredentialError(AuthError):
    """Conta lembrada sem credencial utilizavel; requer nova autenticacao."""


class ProviderUnavailableError(AuthError):
    """Falha de transporte ou indisponibilidade do provedor de identidade."""


class RefreshSessionInvalidError(AuthError):
    """Refresh token rejeitado pelo provedor."""


class RefreshUserMismatchError(AuthError):
    """Refresh token pertence a outro usuario."""

    def __init__(self, message: str, *, session):
        super().__init__(message)
        self.session = session


class SignUpRejectedError(AuthError):
    """Provedor recusou o cadastro."""
