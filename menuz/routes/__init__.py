"""
Routes package for the Menuz backend.
Contains Flask Blueprints for the different API namespaces.
"""

__all__ = [
    "register_blueprints",
]


def _print_route_map(app):
    """Print all registered routes at startup for debugging."""
    routes = []
    for rule in app.url_map.iter_rules():
        if rule.rule.startswith("/api") or rule.rule.startswith("/uploads"):
            methods = ",".join(sorted(m for m in rule.methods if m not in ("HEAD", "OPTIONS")))
            routes.append(f"  {methods:8s} {rule.rule}")

    routes.sort(key=lambda x: x.split()[-1])

    print("[ROUTES] Registered endpoints:")
    for route in routes:
        print(route)
    print(f"[ROUTES] Total: {len(routes)} endpoints")


def register_blueprints(app, print_routes: bool = False):
    """Register all blueprints with the Flask app."""
    from menuz.routes.auth import bp as auth_bp
    from menuz.routes.health import bp as health_bp
    from menuz.routes.items import bp as items_bp
    from menuz.routes.model_jobs import bp as model_jobs_bp
    from menuz.routes.restaurants import bp as restaurants_bp
    from menuz.routes.uploads import bp as uploads_bp

    # Stored files (no prefix)
    app.register_blueprint(uploads_bp)

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(restaurants_bp, url_prefix="/api")
    app.register_blueprint(items_bp, url_prefix="/api")
    app.register_blueprint(model_jobs_bp, url_prefix="/api")

    if print_routes:
        _print_route_map(app)
