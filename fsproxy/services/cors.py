from fsproxy.core.headers import HeaderMultiMap

ALLOWED_METHODS = "GET, HEAD, OPTIONS"
PREFLIGHT_MAX_AGE = "86400"


class CorsPolicy:
    """Permissive cross-origin headers for downloads."""

    def is_preflight(self, headers: HeaderMultiMap) -> bool:
        """Whether an OPTIONS request carries both ``Origin`` and ``Access-Control-Request-Method``."""
        return headers.get("Origin") is not None and headers.get("Access-Control-Request-Method") is not None

    def options_headers(self, headers: HeaderMultiMap) -> HeaderMultiMap:
        """Headers for an OPTIONS answer; plain ``Allow`` unless it is a real preflight."""
        if not self.is_preflight(headers):
            return HeaderMultiMap([("Allow", ALLOWED_METHODS)])
        return HeaderMultiMap(
            [
                ("Access-Control-Allow-Origin", "*"),
                ("Access-Control-Allow-Methods", ALLOWED_METHODS),
                ("Access-Control-Max-Age", PREFLIGHT_MAX_AGE),
                ("Access-Control-Allow-Headers", headers.get("Access-Control-Request-Headers") or ""),
            ]
        )

    def allow_origin(self, request_headers: HeaderMultiMap) -> str:
        return request_headers.get("Origin") or "*"

    def apply(self, request_headers: HeaderMultiMap, response_headers: HeaderMultiMap) -> None:
        response_headers.set("Access-Control-Allow-Origin", self.allow_origin(request_headers))
        response_headers.add("Vary", "Origin")
