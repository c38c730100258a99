# services/task_service.py
"""
Tarefas e seus registros filhos: histórico de auditoria, apontamentos de tempo,
mudanças de prazo e comentários.

Toda alteração de tarefa segue duas etapas: o commit da própria tarefa e, depois,
o commit das entradas de auditoria. Uma falha na segunda etapa é devolvida como
aviso e não desfaz a primeira. Não há controle de versão otimista: duas edições
concorrentes do mesmo campo resultam na última gravada.
"""
from collections import namedtuple
from flask import current_app
from sqlalchemy import func
from extensions import db
from errors import ValidationError
from models import (Project, Task, TaskTimeEntry, TaskDueDateChange, TaskAuditLog, TaskComment,
                    TASK_STATUSES, TASK_PRIORITIES, TASK_DEFAULT_STATUS, TASK_DEFAULT_PRIORITY,
                    TIME_ENTRY_SOURCES)
import permissions
from services.common import (commit_primary, commit_secondary, clean_text, parse_date,
                             parse_datetime, parse_int, parse_id_list)
from utils.changelog_utils import build_audit_entries

TaskUpdateResult = namedtuple('TaskUpdateResult', ['task', 'audit_entries', 'warnings'])
TimeEntryResult = namedtuple('TimeEntryResult', ['entry', 'task', 'warnings'])
DueDateChangeResult = namedtuple('DueDateChangeResult', ['change', 'task', 'warnings'])

UPDATABLE_TASK_FIELDS = (
    'name', 'description', 'sector', 'task_type',
    'executor_ids', 'validator_ids', 'inform_ids',
    'start_date', 'due_date_original', 'due_date_current',
    'estimated_minutes', 'actual_minutes',
    'priority', 'status', 'display_order',
)


def normalize_task_fields(data):
    """Valida e converte os campos de tarefa presentes em data."""
    unknown = set(data) - set(UPDATABLE_TASK_FIELDS)
    if unknown:
        raise ValidationError(f"Campos não permitidos: {', '.join(sorted(unknown))}")

    fields = {}
    for key, value in data.items():
        if key == 'name':
            fields[key] = clean_text(value, 'name', required=True, max_length=255)
        elif key in ('description', 'sector', 'task_type'):
            fields[key] = clean_text(value, key)
        elif key in ('executor_ids', 'validator_ids', 'inform_ids'):
            fields[key] = parse_id_list(value, key)
        elif key in ('start_date', 'due_date_original', 'due_date_current'):
            fields[key] = parse_date(value, key)
        elif key == 'estimated_minutes':
            fields[key] = parse_int(value, key, minimum=0)
        elif key == 'actual_minutes':
            fields[key] = parse_int(value, key, minimum=0) or 0
        elif key == 'display_order':
            fields[key] = parse_int(value, key, required=True)
        elif key == 'priority':
            if value not in TASK_PRIORITIES:
                raise ValidationError(f"Prioridade inválida: {value}")
            fields[key] = value
        elif key == 'status':
            if value not in TASK_STATUSES:
                raise ValidationError(f"Status inválido: {value}")
            fields[key] = value
    return fields


def _persist_audit_entries(task, entries, warnings):
    """Segunda etapa de uma mutação: grava as entradas de auditoria já calculadas."""
    if not entries:
        return []
    rows = [TaskAuditLog(task_id=task.id, **entry) for entry in entries]
    db.session.add_all(rows)
    if commit_secondary(f"registrar o histórico da tarefa {task.id}", warnings):
        return rows
    return []


def _next_display_order(project_id, status):
    current_max = (db.session.query(func.max(Task.display_order))
                   .filter(Task.project_id == project_id, Task.status == status)
                   .scalar())
    return 0 if current_max is None else current_max + 1


# =========================================================================
# Tarefas
# =========================================================================
def add_task(project_id, actor, data):
    project = permissions.load_or_deny(Project, project_id, actor, permissions.can_access_project_content)

    data = dict(data or {})
    # Sem título, a descrição é usada como nome.
    if not clean_text(data.get('name'), 'name'):
        data['name'] = data.get('description')
        if not clean_text(data['name'], 'name'):
            raise ValidationError("A tarefa precisa de um título ou de uma descrição.")
    fields = normalize_task_fields(data)

    fields.setdefault('status', TASK_DEFAULT_STATUS)
    fields.setdefault('priority', TASK_DEFAULT_PRIORITY)
    if fields.get('due_date_current') is None:
        fields['due_date_current'] = fields.get('due_date_original')
    if fields.get('display_order') is None:
        fields['display_order'] = _next_display_order(project.id, fields['status'])

    task = Task(project_id=project.id, created_by=actor.id, **fields)
    db.session.add(task)
    commit_primary('criar tarefa')
    current_app.logger.info(f"Tarefa '{task.name}' ({task.id}) criada no projeto {project.id} por {actor.id}.")
    return task


def get_task(task_id, actor):
    return permissions.load_or_deny(Task, task_id, actor, permissions.can_access_task)


def list_tasks(project_id, actor, status=None):
    project = permissions.load_or_deny(Project, project_id, actor, permissions.can_access_project_content)
    query = Task.query.filter_by(project_id=project.id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Task.status.asc(), Task.display_order.asc(), Task.created_at.asc()).all()


def apply_task_update(task_id, updates, actor):
    """
    Aplica uma atualização parcial e registra uma entrada de auditoria por campo
    cujo valor serializado mudou.
    """
    task = permissions.load_or_deny(Task, task_id, actor, permissions.can_access_task)
    fields = normalize_task_fields(updates or {})
    warnings = []

    # Sem prazo atual, vale o prazo original.
    current = fields.get('due_date_current', task.due_date_current)
    original = fields.get('due_date_original', task.due_date_original)
    if current is None and original is not None:
        fields['due_date_current'] = original

    entries = build_audit_entries(task.snapshot(), fields, actor.id)
    if not entries:
        return TaskUpdateResult(task, [], warnings)

    for key, value in fields.items():
        setattr(task, key, value)
    commit_primary(f"atualizar a tarefa {task.id}")
    current_app.logger.info(f"Tarefa {task.id} atualizada por {actor.id}: {len(entries)} campo(s) alterado(s).")

    rows = _persist_audit_entries(task, entries, warnings)
    return TaskUpdateResult(task, rows, warnings)


def delete_task(task_id, actor):
    task = permissions.load_or_deny(Task, task_id, actor, permissions.can_access_task)
    db.session.delete(task)
    commit_primary(f"excluir a tarefa {task_id}")
    current_app.logger.info(f"Tarefa {task_id} excluída por {actor.id}.")


# =========================================================================
# Tempo e prazo
# =========================================================================
def record_time_entry(task_id, actor, duration_minutes, started_at, ended_at, source='manual', note=None):
    task = permissions.load_or_deny(Task, task_id, actor, permissions.can_access_task)

    duration = parse_int(duration_minutes, 'duration_minutes', required=True)
    started = parse_datetime(started_at, 'started_at')
    ended = parse_datetime(ended_at, 'ended_at')
    if started is None or ended is None:
        raise ValidationError("Informe o início e o fim do apontamento.")
    if ended < started:
        raise ValidationError("O fim do apontamento não pode ser anterior ao início.")
    if source not in TIME_ENTRY_SOURCES:
        raise ValidationError(f"Origem de apontamento inválida: {source}")

    warnings = []
    before = task.snapshot()
    entry = TaskTimeEntry(
        task_id=task.id,
        started_at=started,
        ended_at=ended,
        duration_minutes=duration,
        source=source,
        note=clean_text(note, 'note'),
        created_by=actor.id
    )
    db.session.add(entry)
    # Apontamento e total da tarefa entram na mesma transação.
    task.actual_minutes = max(0, (task.actual_minutes or 0) + duration)
    commit_primary(f"registrar tempo na tarefa {task.id}")

    entries = build_audit_entries(before, {'actual_minutes': task.actual_minutes}, actor.id)
    _persist_audit_entries(task, entries, warnings)
    return TimeEntryResult(entry, task, warnings)


def record_due_date_change(task_id, actor, new_date, reason):
    task = permissions.load_or_deny(Task, task_id, actor, permissions.can_access_task)

    parsed_date = parse_date(new_date, 'new_date')
    if parsed_date is None:
        raise ValidationError("Informe a nova data de entrega.")
    cleaned_reason = clean_text(reason, 'reason', required=True)

    warnings = []
    before = task.snapshot()
    change = TaskDueDateChange(
        task_id=task.id,
        previous_date=task.due_date_current or task.due_date_original,
        new_date=parsed_date,
        reason=cleaned_reason,
        created_by=actor.id
    )
    db.session.add(change)
    task.due_date_current = parsed_date
    commit_primary(f"alterar o prazo da tarefa {task.id}")

    entries = build_audit_entries(before, {'due_date_current': parsed_date}, actor.id)
    _persist_audit_entries(task, entries, warnings)
    return DueDateChangeResult(change, task, warnings)


def get_task_history(task_id, actor):
    task = permissions.load_or_deny(Task, task_id, actor, permissions.can_access_task)
    return {
        'audit_logs': TaskAuditLog.query.filter_by(task_id=task.id).order_by(TaskAuditLog.created_at.desc()).all(),
        'time_entries': TaskTimeEntry.query.filter_by(task_id=task.id).order_by(TaskTimeEntry.created_at.desc()).all(),
        'due_date_changes': TaskDueDateChange.query.filter_by(task_id=task.id).order_by(TaskDueDateChange.created_at.desc()).all(),
    }


# =========================================================================
# Comentários
# =========================================================================
def list_comments(task_id, actor):
    task = permissions.load_or_deny(Task, task_id, actor, permissions.can_access_task)
    return TaskComment.query.filter_by(task_id=task.id).order_by(TaskComment.created_at.desc()).all()


def add_comment(task_id, actor, content):
    task = permissions.load_or_deny(Task, task_id, actor, permissions.can_access_task)
    comment = TaskComment(
        task_id=task.id,
        content=clean_text(content, 'content', required=True),
        created_by=actor.id
    )
    db.session.add(comment)
    commit_primary(f"comentar na tarefa {task.id}")
    return comment


def update_comment(comment_id, actor, content):
    comment = permissions.load_or_deny(TaskComment, comment_id, actor, permissions.can_modify_comment)
    comment.content = clean_text(content, 'content', required=True)
    commit_primary(f"editar o comentário {comment.id}")
    return comment


def delete_comment(comment_id, actor):
    comment = permissions.load_or_deny(TaskComment, comment_id, actor, permissions.can_modify_comment)
    db.session.delete(comment)
    commit_primary(f"excluir o comentário {comment_id}")
