# -*- coding: utf-8 -*-
"""
Testes do feed do workspace e das notificações de menção.
"""

import json

import pytest

from errors import Unauthorized, ValidationError
from extensions import db
from models import FeedPost, Notification, PushSubscription
from services import feed_service, task_service
from utils import push_notification_sender


class TestMentions:

    def test_mentions_fan_out_to_current_members_only(self, workspace, members, manager, executor, viewer, outsider):
        result = feed_service.create_feed_post(
            workspace.id, manager, 'Reunião às 15h',
            mentioned_user_ids=[executor.id, executor.id, outsider.id, manager.id]
        )
        assert result.warnings == []
        assert [n.mentioned_user_id for n in result.notifications] == [executor.id]
        assert Notification.query.count() == 1
        assert result.post.mentioned_user_ids == [executor.id, outsider.id, manager.id]

    def test_viewer_member_can_post(self, workspace, members, viewer, executor):
        result = feed_service.create_feed_post(workspace.id, viewer, 'Olá a todos', mentioned_user_ids=[executor.id])
        assert result.post.created_by == viewer.id
        assert len(result.notifications) == 1

    def test_non_member_cannot_post(self, workspace, outsider):
        with pytest.raises(Unauthorized):
            feed_service.create_feed_post(workspace.id, outsider, 'Intruso')

    def test_empty_content_rejected(self, workspace, manager):
        with pytest.raises(ValidationError):
            feed_service.create_feed_post(workspace.id, manager, '   ')

    def test_task_ids_restricted_to_workspace(self, workspace, task, second_project, manager, other_manager):
        foreign_task = task_service.add_task(second_project.id, other_manager, {'name': 'Tarefa externa'})
        result = feed_service.create_feed_post(workspace.id, manager, 'Veja estas tarefas',
                                               task_ids=[task.id, foreign_task.id])
        assert result.post.task_ids == [task.id]

    def test_notification_failure_keeps_post(self, workspace, members, manager, executor, monkeypatch):
        def broken_notification(**kwargs):
            kwargs['post_id'] = None
            return Notification(**kwargs)

        monkeypatch.setattr(feed_service, 'Notification', broken_notification)
        result = feed_service.create_feed_post(workspace.id, manager, 'Com falha', mentioned_user_ids=[executor.id])

        assert result.notifications == []
        assert len(result.warnings) == 1
        assert db.session.get(FeedPost, result.post.id) is not None
        assert Notification.query.count() == 0


class TestNotifications:

    @pytest.fixture
    def notification(self, workspace, members, manager, executor):
        result = feed_service.create_feed_post(workspace.id, manager, 'Aviso', mentioned_user_ids=[executor.id])
        return result.notifications[0]

    def test_recipient_marks_read(self, notification, executor):
        assert feed_service.unread_count(executor) == 1
        updated = feed_service.mark_read(notification.id, executor)
        assert updated.is_read is True
        assert feed_service.unread_count(executor) == 0

    def test_other_user_cannot_mark_read(self, notification, viewer, manager):
        with pytest.raises(Unauthorized):
            feed_service.mark_read(notification.id, viewer)
        with pytest.raises(Unauthorized):
            feed_service.mark_read(notification.id, manager)

    def test_mark_all_read_only_touches_own(self, notification, workspace, manager, executor, viewer):
        feed_service.create_feed_post(workspace.id, manager, 'Para o leitor', mentioned_user_ids=[viewer.id])
        assert feed_service.mark_all_read(viewer) == 1
        assert feed_service.unread_count(viewer) == 0
        assert feed_service.unread_count(executor) == 1

    def test_list_notifications(self, notification, executor):
        assert [n.id for n in feed_service.list_notifications(executor, unread_only=True)] == [notification.id]


class TestPostLifecycle:

    def test_author_edits_others_cannot(self, workspace, members, manager, executor):
        post = feed_service.create_feed_post(workspace.id, executor, 'Texto original').post
        edited = feed_service.update_feed_post(post.id, executor, {'content': 'Texto editado'})
        assert edited.content == 'Texto editado'
        with pytest.raises(Unauthorized):
            feed_service.update_feed_post(post.id, manager, {'content': 'Editado pelo gerente'})

    def test_deleting_post_removes_notifications(self, workspace, members, manager, executor, super_user):
        post = feed_service.create_feed_post(workspace.id, manager, 'Temporário', mentioned_user_ids=[executor.id]).post
        feed_service.delete_feed_post(post.id, super_user)
        assert Notification.query.count() == 0

    def test_workspace_creator_reads_feed(self, workspace, members, manager, executor, outsider):
        feed_service.create_feed_post(workspace.id, executor, 'Primeira')
        assert len(feed_service.list_feed_posts(workspace.id, manager)) == 1
        with pytest.raises(Unauthorized):
            feed_service.list_feed_posts(workspace.id, outsider)


class TestPush:

    class _InlineThread:
        def __init__(self, target, args):
            self.target, self.args = target, args

        def start(self):
            self.target(*self.args)

    def test_without_vapid_nothing_is_sent(self, executor):
        assert push_notification_sender.send_push_to_user(executor.id, {'body': 'Oi'}) == 0

    def test_mention_is_pushed_to_subscriptions(self, app, workspace, members, manager, executor, monkeypatch):
        app.config.update(VAPID_PUBLIC_KEY='publica', VAPID_PRIVATE_KEY='privada',
                          VAPID_CLAIMS={'sub': 'mailto:push@empresa.com.br'})
        db.session.add(PushSubscription(user_id=executor.id, endpoint='https://push.example/abc',
                                        p256dh='chave', auth='segredo'))
        db.session.commit()

        sent = []
        monkeypatch.setattr(push_notification_sender.threading, 'Thread', self._InlineThread)
        monkeypatch.setattr(push_notification_sender, 'webpush', lambda **kwargs: sent.append(kwargs))

        result = feed_service.create_feed_post(workspace.id, manager, 'Olhe isto', mentioned_user_ids=[executor.id])

        assert result.warnings == []
        assert len(sent) == 1
        assert sent[0]['subscription_info']['endpoint'] == 'https://push.example/abc'
        assert json.loads(sent[0]['data'])['data']['post_id'] == result.post.id
