# services/feed_service.py
"""
Feed do workspace e notificações de menção.

A publicação é gravada primeiro; a distribuição das notificações roda em
seguida, na mesma requisição, e uma falha nela volta como aviso sem desfazer
a publicação.
"""
from collections import namedtuple
from datetime import datetime
from flask import current_app
from extensions import db
from errors import Unauthorized
from models import Workspace, WorkspaceMember, Project, Task, FeedPost, Notification
import permissions
from services.common import commit_primary, commit_secondary, clean_text, parse_id_list
from utils.push_notification_sender import send_push_to_user

FeedPostResult = namedtuple('FeedPostResult', ['post', 'notifications', 'warnings'])


def _workspace_task_ids(workspace_id, task_ids):
    """Mantém apenas as tarefas que pertencem a projetos do workspace."""
    if not task_ids:
        return []
    found = {
        row.id for row in (db.session.query(Task.id)
                           .join(Project, Project.id == Task.project_id)
                           .filter(Project.workspace_id == workspace_id, Task.id.in_(task_ids))
                           .all())
    }
    return [task_id for task_id in task_ids if task_id in found]


def mention_recipients(post):
    """Ids mencionados, distintos, sem o autor e apenas entre os membros atuais do workspace."""
    candidates = [uid for uid in (post.mentioned_user_ids or []) if uid and uid != post.created_by]
    if not candidates:
        return []
    members = {
        row.user_id for row in (db.session.query(WorkspaceMember.user_id)
                                .filter(WorkspaceMember.workspace_id == post.workspace_id,
                                        WorkspaceMember.user_id.in_(candidates))
                                .all())
    }
    recipients = []
    for uid in candidates:
        if uid in members and uid not in recipients:
            recipients.append(uid)
    return recipients


def _dispatch_mentions(post, warnings):
    notifications = [
        Notification(
            workspace_id=post.workspace_id,
            post_id=post.id,
            mentioned_user_id=uid,
            created_by=post.created_by
        )
        for uid in mention_recipients(post)
    ]
    if not notifications:
        return []
    db.session.add_all(notifications)
    if not commit_secondary(f"notificar as menções da publicação {post.id}", warnings):
        return []
    current_app.logger.info(f"{len(notifications)} notificação(ões) criada(s) para a publicação {post.id}.")

    for notification in notifications:
        try:
            send_push_to_user(notification.mentioned_user_id, {
                'title': 'Nova menção no feed',
                'body': notification.message,
                'type': 'feed_mention',
                'workspace_id': post.workspace_id,
                'post_id': post.id
            })
        except Exception as e:
            current_app.logger.warning(f"Falha ao disparar push para {notification.mentioned_user_id}: {e}", exc_info=True)
            warnings.append("Não foi possível enviar a notificação push.")
    return notifications


def create_feed_post(workspace_id, actor, content, task_ids=None, mentioned_user_ids=None):
    workspace = permissions.load_or_deny(Workspace, workspace_id, actor, permissions.can_create_feed_post)
    warnings = []
    post = FeedPost(
        workspace_id=workspace.id,
        content=clean_text(content, 'content', required=True),
        task_ids=_workspace_task_ids(workspace.id, parse_id_list(task_ids, 'task_ids')),
        mentioned_user_ids=parse_id_list(mentioned_user_ids, 'mentioned_user_ids'),
        created_by=actor.id
    )
    db.session.add(post)
    commit_primary('publicar no feed')
    current_app.logger.info(f"Publicação {post.id} criada no workspace {workspace.id} por {actor.id}.")

    notifications = _dispatch_mentions(post, warnings)
    return FeedPostResult(post, notifications, warnings)


def list_feed_posts(workspace_id, actor, limit=50, before=None):
    workspace = permissions.load_or_deny(Workspace, workspace_id, actor, permissions.can_read_feed)
    query = FeedPost.query.filter_by(workspace_id=workspace.id)
    if before is not None:
        query = query.filter(FeedPost.created_at < before)
    return query.order_by(FeedPost.created_at.desc()).limit(limit).all()


def update_feed_post(post_id, actor, data):
    post = permissions.load_or_deny(FeedPost, post_id, actor, permissions.can_modify_feed_post)
    if 'content' in data:
        post.content = clean_text(data['content'], 'content', required=True)
    if 'task_ids' in data:
        post.task_ids = _workspace_task_ids(post.workspace_id, parse_id_list(data['task_ids'], 'task_ids'))
    if 'mentioned_user_ids' in data:
        # Editar menções não gera novas notificações.
        post.mentioned_user_ids = parse_id_list(data['mentioned_user_ids'], 'mentioned_user_ids')
    commit_primary(f"editar a publicação {post.id}")
    return post


def delete_feed_post(post_id, actor):
    post = permissions.load_or_deny(FeedPost, post_id, actor, permissions.can_modify_feed_post)
    db.session.delete(post)
    commit_primary(f"excluir a publicação {post_id}")


# =========================================================================
# Notificações
# =========================================================================
def list_notifications(actor, unread_only=False, workspace_id=None):
    query = Notification.query.filter_by(mentioned_user_id=actor.id)
    if workspace_id:
        query = query.filter_by(workspace_id=workspace_id)
    if unread_only:
        query = query.filter(Notification.read_at.is_(None))
    return query.order_by(Notification.created_at.desc()).all()


def unread_count(actor, workspace_id=None):
    query = Notification.query.filter_by(mentioned_user_id=actor.id).filter(Notification.read_at.is_(None))
    if workspace_id:
        query = query.filter_by(workspace_id=workspace_id)
    return query.count()


def mark_read(notification_id, actor):
    notification = permissions.load_or_deny(Notification, notification_id, actor, permissions.can_access_notification)
    if notification.read_at is None:
        notification.read_at = datetime.utcnow()
        commit_primary('marcar notificação como lida')
    return notification


def mark_all_read(actor, workspace_id=None):
    """Marca como lidas apenas as notificações do próprio usuário."""
    if actor is None or not getattr(actor, 'id', None):
        raise Unauthorized()
    query = Notification.query.filter_by(mentioned_user_id=actor.id).filter(Notification.read_at.is_(None))
    if workspace_id:
        query = query.filter_by(workspace_id=workspace_id)
    now = datetime.utcnow()
    updated = 0
    for notification in query.all():
        notification.read_at = now
        updated += 1
    commit_primary('marcar notificações como lidas')
    return updated
