from tunnel_router.dns.resolver import AtomicFileReplacer, FileReplacer, ResolverManager, render_resolv_conf

__all__ = ["AtomicFileReplacer", "FileReplacer", "ResolverManager", "render_resolv_conf"]
