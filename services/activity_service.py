# services/activity_service.py
"""
Leitura das atividades de um workspace em uma janela de tempo (auditoria,
apontamentos e mudanças de prazo) e o resumo diário enviado por e-mail.
"""
from datetime import datetime, timedelta, time
from flask import current_app
from extensions import db
from errors import ValidationError, UpstreamError
from models import Workspace, Project, Task, TaskAuditLog, TaskTimeEntry, TaskDueDateChange, User
import permissions
from utils.mail_utils import send_notification_email

MAX_WINDOW = timedelta(days=31)


def _task_query(workspace_id, project_id=None):
    query = (db.session.query(Task.id, Task.name, Task.project_id)
             .join(Project, Project.id == Task.project_id)
             .filter(Project.workspace_id == workspace_id))
    if project_id:
        query = query.filter(Task.project_id == project_id)
    return query


def list_workspace_activity(workspace_id, actor, start, end, project_id=None):
    """
    Eventos entre start (inclusivo) e end (exclusivo), do mais recente para o mais antigo.
    Cada evento tem 'type' igual a 'audit', 'time' ou 'due'.
    """
    workspace = permissions.load_or_deny(Workspace, workspace_id, actor, permissions.can_read_workspace)
    if start is None or end is None or end <= start:
        raise ValidationError("Janela de tempo inválida.")
    if end - start > MAX_WINDOW:
        raise ValidationError("A janela de tempo não pode passar de 31 dias.")

    tasks = {row.id: row for row in _task_query(workspace.id, project_id).all()}
    if not tasks:
        return []
    task_ids = list(tasks)

    events = []
    for log in (TaskAuditLog.query
                .filter(TaskAuditLog.task_id.in_(task_ids),
                        TaskAuditLog.created_at >= start, TaskAuditLog.created_at < end)
                .all()):
        events.append({'type': 'audit', 'at': log.created_at, 'user_id': log.changed_by, **log.to_dict()})
    for entry in (TaskTimeEntry.query
                  .filter(TaskTimeEntry.task_id.in_(task_ids),
                          TaskTimeEntry.created_at >= start, TaskTimeEntry.created_at < end)
                  .all()):
        events.append({'type': 'time', 'at': entry.created_at, 'user_id': entry.created_by, **entry.to_dict()})
    for change in (TaskDueDateChange.query
                   .filter(TaskDueDateChange.task_id.in_(task_ids),
                           TaskDueDateChange.created_at >= start, TaskDueDateChange.created_at < end)
                   .all()):
        events.append({'type': 'due', 'at': change.created_at, 'user_id': change.created_by, **change.to_dict()})

    for event in events:
        task = tasks[event['task_id']]
        event['task_name'] = task.name
        event['project_id'] = task.project_id
    events.sort(key=lambda e: e['at'], reverse=True)
    for event in events:
        event['at'] = event['at'].isoformat()
    return events


def day_window(day):
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def build_daily_summary(workspace_id, actor, day, project_id=None):
    start, end = day_window(day)
    events = list_workspace_activity(workspace_id, actor, start, end, project_id=project_id)

    total_minutes = sum(e['duration_minutes'] for e in events if e['type'] == 'time')
    user_ids = {e['user_id'] for e in events if e.get('user_id')}
    users = {u.id: u.display_name for u in User.query.filter(User.id.in_(user_ids)).all()} if user_ids else {}

    lines = []
    for event in sorted(events, key=lambda e: e['at']):
        who = users.get(event.get('user_id'), 'Desconhecido')
        if event['type'] == 'audit':
            lines.append(f"- {who} alterou '{event['field']}' em '{event['task_name']}': "
                         f"{event['old_value'] or '-'} -> {event['new_value'] or '-'}")
        elif event['type'] == 'time':
            lines.append(f"- {who} apontou {event['duration_minutes']} min em '{event['task_name']}'")
        else:
            lines.append(f"- {who} mudou o prazo de '{event['task_name']}' para {event['new_date']}: {event['reason']}")

    return {
        'day': day.isoformat(),
        'workspace_id': workspace_id,
        'project_id': project_id,
        'event_count': len(events),
        'total_minutes': total_minutes,
        'lines': lines,
    }


def _require_member_recipient(workspace, recipient_email):
    """O resumo só pode ser enviado a quem já enxerga o workspace."""
    email = (recipient_email or '').strip().lower()
    recipient = User.query.filter(db.func.lower(User.email) == email).first() if email else None
    if recipient is None or not (recipient.id == workspace.created_by
                                 or permissions.resolve_workspace_role(recipient.id, workspace.id)):
        raise ValidationError("O destinatário precisa ser membro do workspace.")


def send_daily_summary(workspace_id, actor, day, recipient_email, project_id=None):
    summary = build_daily_summary(workspace_id, actor, day, project_id=project_id)
    workspace = db.session.get(Workspace, workspace_id)
    _require_member_recipient(workspace, recipient_email)
    body_lines = [
        f"Resumo do dia {day.strftime('%d/%m/%Y')} - {workspace.name}",
        '',
        f"Eventos registrados: {summary['event_count']}",
        f"Tempo apontado: {summary['total_minutes']} min",
        '',
    ]
    body_lines.extend(summary['lines'] or ['Nenhuma atividade registrada.'])
    if not send_notification_email(recipient_email, f"[Gerenciador de Projetos] Resumo diário - {workspace.name}",
                                   '\n'.join(body_lines)):
        raise UpstreamError("Não foi possível enviar o resumo diário.")
    current_app.logger.info(f"Resumo diário do workspace {workspace_id} enviado para {recipient_email}.")
    return summary
