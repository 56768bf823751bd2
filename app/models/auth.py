"""
Identity & membership models — users, workspaces, workspace_members.

A Workspace is the root of isolation: projects hang off it and every
permission decision is made against the caller's WorkspaceMember row.
Users are created lazily, either on first sign-in through the identity
provider or when someone invites them by email.
"""

from app.models import db
from app.models.base import iso, new_id, utcnow

# Ordered highest → lowest privilege.
WORKSPACE_ROLES = ("owner", "admin", "member", "viewer")


# ═══════════════════════════════════════════════════════════════
# 1. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    external_id = db.Column(
        db.String(128), unique=True, nullable=True,
        comment="Subject id from the identity provider (null until first sign-in)",
    )
    email = db.Column(db.String(255), unique=True, nullable=False)
    display_name = db.Column(db.String(200), nullable=False)
    avatar_url = db.Column(db.String(500), nullable=True)
    job_title = db.Column(db.String(200), nullable=True)
    department = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    memberships = db.relationship(
        "WorkspaceMember", back_populates="user",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def to_summary(self):
        return {
            "id": self.id,
            "display_name": self.display_name,
            "email": self.email,
            "avatar_url": self.avatar_url,
        }

    def to_dict(self):
        d = self.to_summary()
        d.update({
            "external_id": self.external_id,
            "job_title": self.job_title,
            "department": self.department,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        })
        return d

    def __repr__(self):
        return f"<User {self.email}>"


# ═══════════════════════════════════════════════════════════════
# 2. WORKSPACES
# ═══════════════════════════════════════════════════════════════
class Workspace(db.Model):
    __tablename__ = "workspaces"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    logo_url = db.Column(db.String(500), nullable=True)

    # ── Collaboration suite links (optional) ──
    teams_team_id = db.Column(db.String(128), nullable=True)
    teams_channel_id = db.Column(db.String(128), nullable=True)
    sharepoint_site_id = db.Column(db.String(128), nullable=True)
    sharepoint_folder_id = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    members = db.relationship(
        "WorkspaceMember", back_populates="workspace",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    projects = db.relationship(
        "Project", back_populates="workspace", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "logo_url": self.logo_url,
            "teams_team_id": self.teams_team_id,
            "teams_channel_id": self.teams_channel_id,
            "sharepoint_site_id": self.sharepoint_site_id,
            "sharepoint_folder_id": self.sharepoint_folder_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Workspace {self.slug}>"


# ═══════════════════════════════════════════════════════════════
# 3. WORKSPACE MEMBERS
# ═══════════════════════════════════════════════════════════════
class WorkspaceMember(db.Model):
    __tablename__ = "workspace_members"

    workspace_id = db.Column(
        db.String(36),
        db.ForeignKey("workspaces.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    role = db.Column(
        db.String(20), nullable=False, default="member",
        comment="owner | admin | member | viewer",
    )
    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    workspace = db.relationship("Workspace", back_populates="members")
    user = db.relationship("User", back_populates="memberships")

    def to_dict(self):
        d = {
            "workspace_id": self.workspace_id,
            "user_id": self.user_id,
            "role": self.role,
            "joined_at": iso(self.joined_at),
        }
        if self.user is not None:
            d.update({
                "display_name": self.user.display_name,
                "email": self.user.email,
                "avatar_url": self.user.avatar_url,
                "job_title": self.user.job_title,
                "department": self.user.department,
            })
        return d
