# models.py

from extensions import db
from datetime import datetime, date
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin
from sqlalchemy import CheckConstraint, Index, UniqueConstraint
import uuid

# Papéis aceitos tanto no perfil global quanto nas associações de workspace/projeto.
ROLE_MANAGER = 'manager'
ROLE_EXECUTOR = 'executor'
ROLE_VIEWER = 'viewer'
ROLES = (ROLE_MANAGER, ROLE_EXECUTOR, ROLE_VIEWER)

PROJECT_DEFAULT_STATUS = 'Novo'

TASK_STATUSES = (
    'Backlog',
    'Pendente',
    'Em Execução',
    'Em Validação',
    'Concluída',
    'Bloqueada',
    'Cancelada',
)
TASK_DEFAULT_STATUS = 'Backlog'

TASK_PRIORITIES = ('Baixa', 'Média', 'Alta', 'Crítica')
TASK_DEFAULT_PRIORITY = 'Média'

TIME_ENTRY_SOURCES = ('timer', 'manual')

DEFAULT_TAG_COLOR = '#64748b'


def generate_uuid():
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model, UserMixin):
    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    # Papel global; NULL equivale a 'viewer'
    role = db.Column(db.String(20), nullable=True, default=ROLE_VIEWER)
    password_set = db.Column(db.Boolean, default=False, nullable=False)
    full_name = db.Column(db.String(150), nullable=True)
    title = db.Column(db.String(150), nullable=True)
    company = db.Column(db.String(150), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    avatar_url = db.Column(db.String(500), nullable=True)
    theme = db.Column(db.String(20), nullable=True)
    is_active_db = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    super_user_entry = db.relationship('SuperUser', backref='user', uselist=False, lazy=True, cascade='all, delete-orphan')
    push_subscriptions = db.relationship('PushSubscription', backref='user', lazy='dynamic', cascade='all, delete-orphan')

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_active(self):
        return self.is_active_db

    @property
    def global_role(self):
        return self.role if self.role in ROLES else ROLE_VIEWER

    @property
    def is_super_user(self):
        return self.super_user_entry is not None

    @property
    def display_name(self):
        return self.full_name or self.email

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'title': self.title,
            'company': self.company,
            'phone': self.phone,
            'avatar_url': self.avatar_url,
            'theme': self.theme,
            'role': self.global_role,
            'is_super_user': self.is_super_user,
            'password_set': self.password_set,
            'is_active': self.is_active_db,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }

    def __repr__(self):
        return f"User('{self.email}', Role: '{self.global_role}')"

    def __eq__(self, other):
        if not isinstance(other, User):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)


class SuperUser(db.Model):
    __tablename__ = 'super_user'
    user_id = db.Column(db.String(36), db.ForeignKey('user.id', ondelete='CASCADE'), primary_key=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<SuperUser {self.user_id}>'


# =========================================================================
# Workspaces e projetos
# =========================================================================
class Workspace(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    creator = db.relationship('User', foreign_keys=[created_by])
    projects = db.relationship('Project', backref='workspace', lazy=True, cascade='all, delete-orphan')
    members = db.relationship('WorkspaceMember', backref='workspace', lazy=True, cascade='all, delete-orphan')
    sectors = db.relationship('Sector', backref='workspace', lazy=True, cascade='all, delete-orphan')
    task_types = db.relationship('TaskType', backref='workspace', lazy=True, cascade='all, delete-orphan')
    feed_posts = db.relationship('FeedPost', backref='workspace', lazy=True, cascade='all, delete-orphan')
    notifications = db.relationship('Notification', backref='workspace', lazy=True, cascade='all, delete-orphan')
    presence = db.relationship('WorkspacePresence', backref='workspace', lazy=True, cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }

    def __repr__(self):
        return f"Workspace('{self.name}')"


class Project(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    workspace_id = db.Column(db.String(36), db.ForeignKey('workspace.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(150), nullable=False)
    summary = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(50), nullable=False, default=PROJECT_DEFAULT_STATUS)
    created_by = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    creator = db.relationship('User', foreign_keys=[created_by])
    tasks = db.relationship('Task', backref='project', lazy=True, cascade='all, delete-orphan')
    members = db.relationship('ProjectMember', backref='project', lazy=True, cascade='all, delete-orphan')
    extra_work_entries = db.relationship('ProjectExtraWorkEntry', backref='project', lazy=True, cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'workspace_id': self.workspace_id,
            'name': self.name,
            'summary': self.summary,
            'status': self.status,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }

    def __repr__(self):
        return f"Project('{self.name}', Workspace: '{self.workspace_id}')"


class WorkspaceMember(db.Model):
    __tablename__ = 'workspace_member'
    __table_args__ = (UniqueConstraint('workspace_id', 'user_id', name='uq_workspace_member'),)

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    workspace_id = db.Column(db.String(36), db.ForeignKey('workspace.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, default=ROLE_EXECUTOR)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'workspace_id': self.workspace_id,
            'user_id': self.user_id,
            'email': self.user.email if self.user else None,
            'full_name': self.user.full_name if self.user else None,
            'role': self.role,
            'created_at': _iso(self.created_at)
        }

    def __repr__(self):
        return f"WorkspaceMember(Workspace: {self.workspace_id}, User: {self.user_id}, Role: '{self.role}')"


class ProjectMember(db.Model):
    __tablename__ = 'project_member'
    __table_args__ = (UniqueConstraint('project_id', 'user_id', name='uq_project_member'),)

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    project_id = db.Column(db.String(36), db.ForeignKey('project.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, default=ROLE_EXECUTOR)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'project_id': self.project_id,
            'user_id': self.user_id,
            'email': self.user.email if self.user else None,
            'full_name': self.user.full_name if self.user else None,
            'role': self.role,
            'created_at': _iso(self.created_at)
        }

    def __repr__(self):
        return f"ProjectMember(Project: {self.project_id}, User: {self.user_id}, Role: '{self.role}')"


# =========================================================================
# Vocabulários do workspace (setores e tipos de tarefa)
# =========================================================================
class Sector(db.Model):
    __table_args__ = (UniqueConstraint('workspace_id', 'name', name='uq_sector_workspace_name'),)

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    workspace_id = db.Column(db.String(36), db.ForeignKey('workspace.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    color = db.Column(db.String(20), nullable=False, default=DEFAULT_TAG_COLOR)
    created_by = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'workspace_id': self.workspace_id,
            'name': self.name,
            'color': self.color,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at)
        }

    def __repr__(self):
        return f"Sector('{self.name}')"


class TaskType(db.Model):
    __tablename__ = 'task_type'
    __table_args__ = (UniqueConstraint('workspace_id', 'name', name='uq_task_type_workspace_name'),)

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    workspace_id = db.Column(db.String(36), db.ForeignKey('workspace.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    color = db.Column(db.String(20), nullable=False, default=DEFAULT_TAG_COLOR)
    created_by = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'workspace_id': self.workspace_id,
            'name': self.name,
            'color': self.color,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at)
        }

    def __repr__(self):
        return f"TaskType('{self.name}')"


# =========================================================================
# Tarefas e registros filhos
# =========================================================================
class Task(db.Model):
    __tablename__ = 'project_task'
    __table_args__ = (Index('ix_project_task_lane', 'project_id', 'status', 'display_order'),)

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    project_id = db.Column(db.String(36), db.ForeignKey('project.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sector = db.Column(db.String(100), nullable=True)
    task_type = db.Column(db.String(100), nullable=True)
    executor_ids = db.Column(db.JSON, nullable=False, default=list)
    validator_ids = db.Column(db.JSON, nullable=False, default=list)
    inform_ids = db.Column(db.JSON, nullable=False, default=list)
    start_date = db.Column(db.Date, nullable=True)
    due_date_original = db.Column(db.Date, nullable=True)
    due_date_current = db.Column(db.Date, nullable=True)
    estimated_minutes = db.Column(db.Integer, nullable=True)
    actual_minutes = db.Column(db.Integer, nullable=False, default=0)
    priority = db.Column(db.String(20), nullable=False, default=TASK_DEFAULT_PRIORITY)
    status = db.Column(db.String(50), nullable=False, default=TASK_DEFAULT_STATUS)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    created_by = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    time_entries = db.relationship('TaskTimeEntry', backref='task', lazy=True, cascade='all, delete-orphan',
                                   order_by='TaskTimeEntry.created_at.desc()')
    due_date_changes = db.relationship('TaskDueDateChange', backref='task', lazy=True, cascade='all, delete-orphan',
                                       order_by='TaskDueDateChange.created_at.desc()')
    audit_logs = db.relationship('TaskAuditLog', backref='task', lazy=True, cascade='all, delete-orphan',
                                 order_by='TaskAuditLog.created_at.desc()')
    comments = db.relationship('TaskComment', backref='task', lazy=True, cascade='all, delete-orphan',
                               order_by='TaskComment.created_at.desc()')

    def snapshot(self):
        """Valores atuais dos campos editáveis, usados como base do diff de auditoria."""
        return {
            'name': self.name,
            'description': self.description,
            'sector': self.sector,
            'task_type': self.task_type,
            'executor_ids': list(self.executor_ids or []),
            'validator_ids': list(self.validator_ids or []),
            'inform_ids': list(self.inform_ids or []),
            'start_date': self.start_date,
            'due_date_original': self.due_date_original,
            'due_date_current': self.due_date_current,
            'estimated_minutes': self.estimated_minutes,
            'actual_minutes': self.actual_minutes,
            'priority': self.priority,
            'status': self.status,
            'display_order': self.display_order
        }

    def to_dict(self):
        return {
            'id': self.id,
            'project_id': self.project_id,
            'name': self.name,
            'description': self.description,
            'sector': self.sector,
            'task_type': self.task_type,
            'executor_ids': list(self.executor_ids or []),
            'validator_ids': list(self.validator_ids or []),
            'inform_ids': list(self.inform_ids or []),
            'start_date': _iso(self.start_date),
            'due_date_original': _iso(self.due_date_original),
            'due_date_current': _iso(self.due_date_current),
            'estimated_minutes': self.estimated_minutes,
            'actual_minutes': self.actual_minutes,
            'priority': self.priority,
            'status': self.status,
            'display_order': self.display_order,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }

    def __repr__(self):
        return f"Task('{self.name}', Status: '{self.status}')"


class TaskTimeEntry(db.Model):
    __tablename__ = 'task_time_entry'
    __table_args__ = (CheckConstraint("source IN ('timer', 'manual')", name='ck_task_time_entry_source'),)

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    task_id = db.Column(db.String(36), db.ForeignKey('project_task.id', ondelete='CASCADE'), nullable=False, index=True)
    started_at = db.Column(db.DateTime, nullable=False)
    ended_at = db.Column(db.DateTime, nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False)
    source = db.Column(db.String(10), nullable=False, default='manual')
    note = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'task_id': self.task_id,
            'started_at': _iso(self.started_at),
            'ended_at': _iso(self.ended_at),
            'duration_minutes': self.duration_minutes,
            'source': self.source,
            'note': self.note,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at)
        }

    def __repr__(self):
        return f'<TaskTimeEntry {self.duration_minutes}min for Task {self.task_id}>'


class TaskDueDateChange(db.Model):
    __tablename__ = 'task_due_date_change'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    task_id = db.Column(db.String(36), db.ForeignKey('project_task.id', ondelete='CASCADE'), nullable=False, index=True)
    previous_date = db.Column(db.Date, nullable=True)
    new_date = db.Column(db.Date, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    created_by = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'task_id': self.task_id,
            'previous_date': _iso(self.previous_date),
            'new_date': _iso(self.new_date),
            'reason': self.reason,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at)
        }

    def __repr__(self):
        return f'<TaskDueDateChange {self.previous_date} -> {self.new_date} for Task {self.task_id}>'


class TaskAuditLog(db.Model):
    __tablename__ = 'task_audit_log'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    task_id = db.Column(db.String(36), db.ForeignKey('project_task.id', ondelete='CASCADE'), nullable=False, index=True)
    field = db.Column(db.String(100), nullable=False)
    old_value = db.Column(db.Text, nullable=True)
    new_value = db.Column(db.Text, nullable=True)
    changed_by = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'task_id': self.task_id,
            'field': self.field,
            'old_value': self.old_value,
            'new_value': self.new_value,
            'changed_by': self.changed_by,
            'created_at': _iso(self.created_at)
        }

    def __repr__(self):
        return f"<TaskAuditLog '{self.field}' for Task {self.task_id} by User {self.changed_by}>"


class TaskComment(db.Model):
    __tablename__ = 'task_comment'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    task_id = db.Column(db.String(36), db.ForeignKey('project_task.id', ondelete='CASCADE'), nullable=False, index=True)
    content = db.Column(db.Text, nullable=False)
    created_by = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    author = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'task_id': self.task_id,
            'content': self.content,
            'created_by': self.created_by,
            'author': self.author.display_name if self.author else 'Desconhecido',
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }

    def __repr__(self):
        return f"TaskComment(ID: {self.id}, Task ID: {self.task_id}, Author: {self.created_by})"


class ProjectExtraWorkEntry(db.Model):
    __tablename__ = 'project_extra_work_entry'
    __table_args__ = (CheckConstraint('duration_minutes >= 0', name='ck_extra_work_duration'),)

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    project_id = db.Column(db.String(36), db.ForeignKey('project.id', ondelete='CASCADE'), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False)
    worked_at = db.Column(db.Date, nullable=False, default=date.today)
    note = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'project_id': self.project_id,
            'description': self.description,
            'duration_minutes': self.duration_minutes,
            'worked_at': _iso(self.worked_at),
            'note': self.note,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at)
        }

    def __repr__(self):
        return f'<ProjectExtraWorkEntry {self.duration_minutes}min for Project {self.project_id}>'


# =========================================================================
# Feed, notificações e presença
# =========================================================================
class FeedPost(db.Model):
    __tablename__ = 'feed_post'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    workspace_id = db.Column(db.String(36), db.ForeignKey('workspace.id', ondelete='CASCADE'), nullable=False, index=True)
    content = db.Column(db.Text, nullable=False)
    task_ids = db.Column(db.JSON, nullable=False, default=list)
    mentioned_user_ids = db.Column(db.JSON, nullable=False, default=list)
    created_by = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    author = db.relationship('User')
    notifications = db.relationship('Notification', backref='post', lazy=True, cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'workspace_id': self.workspace_id,
            'content': self.content,
            'task_ids': list(self.task_ids or []),
            'mentioned_user_ids': list(self.mentioned_user_ids or []),
            'created_by': self.created_by,
            'author': self.author.display_name if self.author else 'Desconhecido',
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }

    def __repr__(self):
        return f"FeedPost(ID: {self.id}, Workspace: {self.workspace_id}, Author: {self.created_by})"


class Notification(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    workspace_id = db.Column(db.String(36), db.ForeignKey('workspace.id', ondelete='CASCADE'), nullable=False, index=True)
    post_id = db.Column(db.String(36), db.ForeignKey('feed_post.id', ondelete='CASCADE'), nullable=False, index=True)
    mentioned_user_id = db.Column(db.String(36), db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False, index=True)
    created_by = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    read_at = db.Column(db.DateTime, nullable=True)

    recipient = db.relationship('User', foreign_keys=[mentioned_user_id])
    author = db.relationship('User', foreign_keys=[created_by])

    @property
    def is_read(self):
        return self.read_at is not None

    @property
    def message(self):
        author_name = self.author.display_name if self.author else 'Alguém'
        return f"Você foi mencionado por '{author_name}' no feed."

    def to_dict(self):
        return {
            'id': self.id,
            'workspace_id': self.workspace_id,
            'post_id': self.post_id,
            'mentioned_user_id': self.mentioned_user_id,
            'created_by': self.created_by,
            'message': self.message,
            'is_read': self.is_read,
            'read_at': _iso(self.read_at),
            'created_at': _iso(self.created_at)
        }

    def __repr__(self):
        return f"Notification(User: {self.mentioned_user_id}, Post: {self.post_id}, Read: {self.is_read})"


class WorkspacePresence(db.Model):
    __tablename__ = 'workspace_presence'

    workspace_id = db.Column(db.String(36), db.ForeignKey('workspace.id', ondelete='CASCADE'), primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id', ondelete='CASCADE'), primary_key=True)
    last_seen = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship('User')

    def to_dict(self):
        return {
            'workspace_id': self.workspace_id,
            'user_id': self.user_id,
            'full_name': self.user.full_name if self.user else None,
            'avatar_url': self.user.avatar_url if self.user else None,
            'last_seen': _iso(self.last_seen)
        }

    def __repr__(self):
        return f'<WorkspacePresence {self.user_id} @ {self.workspace_id}>'


class PushSubscription(db.Model):
    __tablename__ = 'push_subscription'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    endpoint = db.Column(db.String(512), unique=True, nullable=False)
    p256dh = db.Column(db.String(255), nullable=False)
    auth = db.Column(db.String(255), nullable=False)
    timestamp = db.Column(db.DateTime, index=True, default=datetime.utcnow)

    def __repr__(self):
        return f'<PushSubscription {self.endpoint} for User {self.user_id}>'

    def to_dict(self):
        """
        Converte o objeto PushSubscription em um dicionário compatível
        com a biblioteca pywebpush para envio de notificações.
        """
        return {
            'endpoint': self.endpoint,
            'keys': {
                'p256dh': self.p256dh,
                'auth': self.auth
            }
        }
