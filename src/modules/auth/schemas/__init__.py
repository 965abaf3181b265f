from .auth_schemas import LoginRequest, TokenResponse, UserResponse

__all__ = ['LoginRequest', 'TokenResponse', 'UserResponse']
