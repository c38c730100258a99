from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, BooleanField, TextAreaField
from wtforms.validators import DataRequired, Length, Email, EqualTo, Optional, AnyOf
from models import ROLES, TASK_STATUSES, TASK_PRIORITIES, TIME_ENTRY_SOURCES


def _as_text(value):
    # O corpo JSON pode trazer números ou listas em campos de texto.
    if value is None or isinstance(value, str):
        return value
    return str(value)


class ApiForm(FlaskForm):
    """
    Formulários da API JSON. O Flask-WTF preenche os campos a partir do corpo
    JSON da requisição; CSRF fica desligado porque a API usa a sessão do Flask-Login.
    """
    class Meta:
        csrf = False

        def bind_field(self, form, unbound_field, options):
            if issubclass(unbound_field.field_class, StringField):
                filters = list(unbound_field.kwargs.get('filters') or [])
                options = dict(options, filters=[_as_text] + filters)
            return unbound_field.bind(form=form, **options)


# --- Autenticação ---

class LoginForm(ApiForm):
    email = StringField('Email', validators=[DataRequired(), Email()])
    password = PasswordField('Senha', validators=[DataRequired()])
    remember = BooleanField('Lembrar-me')


class PasswordSetupForm(ApiForm):
    password = PasswordField('Nova Senha', validators=[DataRequired(), Length(min=8, max=128)])
    confirm_password = PasswordField('Confirmar Nova Senha', validators=[DataRequired(), EqualTo('password')])


class InviteForm(ApiForm):
    email = StringField('Email', validators=[DataRequired(), Email()])
    role = StringField('Papel', validators=[Optional(), AnyOf(ROLES)])


# --- Workspaces e projetos ---

class WorkspaceForm(ApiForm):
    name = StringField('Nome do Workspace', validators=[DataRequired(), Length(max=150)])
    description = TextAreaField('Descrição', validators=[Optional()])


class ProjectForm(ApiForm):
    name = StringField('Nome do Projeto', validators=[DataRequired(), Length(max=150)])
    summary = TextAreaField('Resumo', validators=[Optional()])
    status = StringField('Status', validators=[Optional(), Length(max=50)])


class MemberForm(ApiForm):
    user_id = StringField('Usuário', validators=[DataRequired()])
    role = StringField('Papel', validators=[Optional(), AnyOf(ROLES)])


class RoleForm(ApiForm):
    role = StringField('Papel', validators=[DataRequired(), AnyOf(ROLES)])


class VocabularyForm(ApiForm):
    name = StringField('Nome', validators=[DataRequired(), Length(max=100)])
    color = StringField('Cor', validators=[Optional(), Length(max=20)])


# --- Tarefas ---

class TaskForm(ApiForm):
    name = StringField('Título', validators=[Optional(), Length(max=255)])
    description = TextAreaField('Descrição', validators=[Optional()])
    priority = StringField('Prioridade', validators=[Optional(), AnyOf(TASK_PRIORITIES)])
    status = StringField('Status da Tarefa', validators=[Optional(), AnyOf(TASK_STATUSES)])


class TimeEntryForm(ApiForm):
    started_at = StringField('Início', validators=[DataRequired()])
    ended_at = StringField('Fim', validators=[DataRequired()])
    source = StringField('Origem', validators=[Optional(), AnyOf(TIME_ENTRY_SOURCES)])
    note = TextAreaField('Observação', validators=[Optional()])


class DueDateChangeForm(ApiForm):
    new_date = StringField('Nova Data', validators=[DataRequired()])
    reason = TextAreaField('Motivo', validators=[DataRequired(), Length(max=1000)])


class CommentForm(ApiForm):
    content = TextAreaField('Comentário', validators=[DataRequired(), Length(min=1, max=5000)])


class ExtraWorkForm(ApiForm):
    description = TextAreaField('Descrição', validators=[DataRequired()])
    worked_at = StringField('Data', validators=[Optional()])
    note = TextAreaField('Observação', validators=[Optional()])


# --- Feed e resumo ---

class FeedPostForm(ApiForm):
    content = TextAreaField('Mensagem', validators=[DataRequired(), Length(max=5000)])


class DailySummaryForm(ApiForm):
    recipient_email = StringField('Email', validators=[DataRequired(), Email()])
    day = StringField('Dia', validators=[Optional()])
