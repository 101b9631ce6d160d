"""
Access control middleware for the admin surface
"""

import ipaddress
import secrets
from typing import Callable, Dict, List, Optional
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..utils.logging import setup_logging

logger = setup_logging()


def parse_ip_list(ip_string: Optional[str]) -> List[str]:
    """
    Parse comma-separated IP configuration string

    Args:
        ip_string: Comma-separated IP addresses/ranges (e.g., "127.0.0.1,10.0.0.*,192.168.1.0/24")

    Returns:
        List of IP configurations
    """
    if not ip_string or ip_string.strip().lower() in ["all", "*"]:
        return ["all"]

    return [ip.strip() for ip in ip_string.split(',') if ip.strip()]


class IPAllowList:
    """Matches client addresses against specific IPs, CIDR ranges and wildcards"""

    def __init__(self, allowed_ips: List[str]):
        self.allowed_ips = allowed_ips
        self.allow_all = "all" in allowed_ips or "*" in allowed_ips
        self.specific_ips = set()
        self.ip_networks = []
        self.wildcard_patterns = []

        if not self.allow_all:
            self._parse_ip_configurations()

    def _parse_ip_configurations(self):
        for ip_config in self.allowed_ips:
            if '*' in ip_config:
                self.wildcard_patterns.append(ip_config)
            elif '/' in ip_config:
                try:
                    self.ip_networks.append(ipaddress.ip_network(ip_config, strict=False))
                except ValueError as e:
                    logger.error("Invalid CIDR range", range=ip_config, error=str(e))
            else:
                try:
                    self.specific_ips.add(ipaddress.ip_address(ip_config))
                except ValueError as e:
                    logger.error("Invalid IP address", ip=ip_config, error=str(e))

    def allows(self, client_ip: str) -> bool:
        if self.allow_all:
            return True

        try:
            ip = ipaddress.ip_address(client_ip)
        except ValueError:
            logger.error("Invalid client IP address", client_ip=client_ip)
            return False

        if ip in self.specific_ips:
            return True
        if any(ip in network for network in self.ip_networks):
            return True
        return any(self._match_wildcard(client_ip, p) for p in self.wildcard_patterns)

    def _match_wildcard(self, ip: str, pattern: str) -> bool:
        ip_parts = ip.split('.')
        pattern_parts = pattern.split('.')

        if len(ip_parts) != 4 or len(pattern_parts) != 4:
            return False

        for ip_part, pattern_part in zip(ip_parts, pattern_parts):
            if pattern_part != '*' and ip_part != pattern_part:
                return False
        return True


class AdminAccessMiddleware(BaseHTTPMiddleware):
    """Restricts protected paths by client IP and, when configured, a bearer token"""

    def __init__(self, app, protected_paths: List[str], config_provider: Callable):
        """
        Initialize admin access middleware

        Args:
            app: FastAPI application
            protected_paths: Path prefixes to protect (e.g., ["/admin"])
            config_provider: Returns the current ProxyConfig; read per request
                because configuration is loaded during application startup
        """
        super().__init__(app)
        self.protected_paths = protected_paths
        self.config_provider = config_provider
        self._allow_lists: Dict[str, IPAllowList] = {}

    def _get_allow_list(self, ip_string: str) -> IPAllowList:
        if ip_string not in self._allow_lists:
            allow_list = IPAllowList(parse_ip_list(ip_string))
            self._allow_lists[ip_string] = allow_list
            logger.info("IP allow-list loaded", allowed_ips=allow_list.allowed_ips)
        return self._allow_lists[ip_string]

    def _is_protected_path(self, path: str) -> bool:
        return any(path.startswith(p) for p in self.protected_paths)

    def _client_ip(self, request: Request, trusted_proxies: str) -> str:
        """Socket peer address, or the first X-Forwarded-For hop when the peer is a trusted proxy"""
        peer_ip = request.client.host if request.client else "unknown"
        forwarded_for = request.headers.get("X-Forwarded-For")
        if not forwarded_for or not trusted_proxies.strip():
            return peer_ip

        if not self._get_allow_list(trusted_proxies).allows(peer_ip):
            logger.warning("Ignoring X-Forwarded-For from untrusted peer",
                           peer_ip=peer_ip, forwarded_for=forwarded_for)
            return peer_ip
        return forwarded_for.split(',')[0].strip()

    def _token_matches(self, request: Request, expected: str) -> bool:
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return False
        return secrets.compare_digest(token.strip().encode(), expected.encode())

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self._is_protected_path(request.url.path):
            return await call_next(request)

        config = self.config_provider()
        if config is None:
            return JSONResponse(status_code=503, content={"error": "Service starting"})

        client_ip = self._client_ip(request, config.trusted_proxies)

        if not self._get_allow_list(config.admin_allowed_ips).allows(client_ip):
            logger.warning("Access denied", client_ip=client_ip, path=request.url.path)
            return JSONResponse(
                status_code=403,
                content={
                    "error": "Access denied",
                    "message": f"IP address {client_ip} is not authorized to access this resource"
                }
            )

        if config.admin_token and not self._token_matches(request, config.admin_token):
            logger.warning("Invalid admin token", client_ip=client_ip, path=request.url.path)
            return JSONResponse(
                status_code=401,
                content={"error": "Unauthorized", "message": "A valid bearer token is required"},
                headers={"WWW-Authenticate": "Bearer"}
            )

        return await call_next(request)
