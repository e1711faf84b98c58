"""Campus RBAC CLI tool (campusctl)."""

from typing import List

import typer

app = typer.Typer(name="campusctl", help="Campus RBAC CLI")
db_app = typer.Typer(help="Database management commands")
rbac_app = typer.Typer(help="Role and permission inspection commands")
app.add_typer(db_app, name="db")
app.add_typer(rbac_app, name="rbac")


@db_app.command("create")
def db_create():
    """Create all tables that don't exist yet."""
    from campus_rbac.db.base import Base
    from campus_rbac.db.session import engine
    import campus_rbac.models  # noqa: F401  registers every table on Base.metadata

    Base.metadata.create_all(bind=engine)
    typer.echo(f"Tables created on {engine.url.render_as_string(hide_password=True)}")


@db_app.command("seed")
def db_seed(
    branch_id: List[int] = typer.Option(None, "--branch-id", help="Also seed system roles in this branch (repeatable)"),
):
    """Seed the permission catalog, system roles, legacy roles and super-admin."""
    from campus_rbac.core.config import settings
    from campus_rbac.db.session import SessionLocal
    from campus_rbac.db.seeds.seed_permissions import seed_permissions
    from campus_rbac.db.seeds.seed_roles import seed_roles, seed_super_admin
    from campus_rbac.services.legacy_bridge import LegacyRoleMirror, RoleEventBus

    bus = RoleEventBus()
    if settings.LEGACY_MIRROR_ENABLED:
        bus.subscribe(LegacyRoleMirror(SessionLocal))

    db = SessionLocal()
    try:
        seed_permissions(db)
        seed_roles(db, branch_ids=branch_id or None, event_bus=bus)
        seed_super_admin(db)
    finally:
        db.close()
    typer.echo("All seeds applied")


@rbac_app.command("verify")
def rbac_verify():
    """Check every route permission exists in the catalog."""
    from campus_rbac.core.route_permissions import all_route_permissions
    from campus_rbac.db.session import SessionLocal
    from campus_rbac.models.permission import Permission

    db = SessionLocal()
    try:
        catalog = {name for (name,) in db.query(Permission.name).all()}
    finally:
        db.close()

    missing = sorted(all_route_permissions() - catalog)
    if missing:
        for name in missing:
            typer.echo(f"  missing: {name}")
        typer.echo(f"{len(missing)} route permission(s) are not in the catalog")
        raise typer.Exit(code=1)
    typer.echo("All route permissions are present in the catalog")


@rbac_app.command("orphans")
def rbac_orphans():
    """List assignments whose role no longer exists."""
    from campus_rbac.db.session import SessionLocal
    from campus_rbac.services.assignment_service import assignment_service

    db = SessionLocal()
    try:
        orphans = assignment_service.find_orphaned_assignments(db)
        for a in orphans:
            typer.echo(f"  [{a.id}] user={a.user_id} role={a.role_id} branch={a.branch_id}")
    finally:
        db.close()
    typer.echo(f"{len(orphans)} orphaned assignment(s)")


@rbac_app.command("check")
def rbac_check(
    user_id: int = typer.Argument(..., help="User ID"),
    permission: List[str] = typer.Argument(..., help="Permission name(s), e.g. students:read"),
    any_of: bool = typer.Option(False, "--any", help="Grant when any one permission is held"),
):
    """Evaluate a user's permissions the way the API does."""
    from campus_rbac.core.config import settings
    from campus_rbac.core.security import Principal
    from campus_rbac.db.session import SessionLocal
    from campus_rbac.models.user import User
    from campus_rbac.services.authorization_service import (
        AuthorizationEngine, MatchMode, build_authorizer,
    )

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.id == user_id).first()
        principal = Principal(
            user_id=user_id,
            legacy_role=user.role.name if user and user.role else None,
            branch_id=user.branch_id if user else None,
        )
    finally:
        db.close()

    engine = AuthorizationEngine(SessionLocal, timeout_seconds=settings.PERMISSION_CHECK_TIMEOUT_SECONDS)
    try:
        authorizer = build_authorizer(engine, settings)
        decision = authorizer.evaluate(principal, permission, MatchMode.ANY if any_of else MatchMode.ALL)
    finally:
        engine.shutdown()

    if decision.granted:
        typer.echo(f"GRANTED ({decision.reason})")
    else:
        typer.echo(f"DENIED ({decision.reason}); missing: {', '.join(decision.missing) or '-'}")
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(True, help="Auto-reload"),
):
    """Start the FastAPI development server."""
    import uvicorn
    uvicorn.run("campus_rbac.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
