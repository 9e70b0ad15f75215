from .claims import Claims, normalize_claim
from .config import AuthzConfig, ClaimsConfig, DirectoryConfig, LogLevel, load_authz_config_from_env
from .directory import DirectoryCache, DirectoryClient, HttpDirectoryClient
from .exceptions import (
    AlreadyExistsError,
    AuthzError,
    ConfigurationError,
    DirectoryError,
    InvalidParameterError,
    ParameterRequiredError,
    RecordNotFound,
    UnauthorizedError,
)
from .logging import (
    AuthzFormatter,
    AuthzLoggerAdapter,
    get_authz_logger,
    redact_secrets,
    safe_log_value,
    safe_preview,
    setup_logging,
)
from .membership import MembershipAdmin, MembershipResolver
from .security import AuthzGuard, AuthzGuards, AuthzInterceptor, AuthzRequest, RouteRule
from .workspaces import ProvisioningReport, ReconcileReport, WorkspaceProvisioner, WorkspaceReconciler

__all__ = [
    'Claims',
    'normalize_claim',
    'AuthzConfig',
    'ClaimsConfig',
    'DirectoryConfig',
    'LogLevel',
    'load_authz_config_from_env',
    'DirectoryCache',
    'DirectoryClient',
    'HttpDirectoryClient',
    'AuthzError',
    'AlreadyExistsError',
    'ConfigurationError',
    'DirectoryError',
    'InvalidParameterError',
    'ParameterRequiredError',
    'RecordNotFound',
    'UnauthorizedError',
    'safe_preview',
    'redact_secrets',
    'safe_log_value',
    'AuthzFormatter',
    'AuthzLoggerAdapter',
    'setup_logging',
    'get_authz_logger',
    'MembershipAdmin',
    'MembershipResolver',
    'AuthzGuard',
    'AuthzGuards',
    'AuthzInterceptor',
    'AuthzRequest',
    'RouteRule',
    'ProvisioningReport',
    'ReconcileReport',
    'WorkspaceProvisioner',
    'WorkspaceReconciler',
]
