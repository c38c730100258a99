# utils/push_notification_sender.py

from flask import current_app
from pywebpush import webpush, WebPushException
from models import PushSubscription
from extensions import db
import json
import threading


def _send_notification_async(app, subscription_id, subscription_info, json_payload, vapid_private_key, vapid_claims, user_id):
    """
    Envia uma notificação push para uma subscription.
    Executada em uma thread separada, com o contexto da aplicação empurrado.
    """
    with app.app_context():
        endpoint = subscription_info.get('endpoint')
        try:
            webpush(
                subscription_info=subscription_info,
                data=json_payload,
                vapid_private_key=vapid_private_key,
                vapid_claims=vapid_claims
            )
            app.logger.info(f"Notificação push enviada para o usuário {user_id} ({endpoint}).")
        except WebPushException as e:
            if e.response is not None and e.response.status_code in [404, 410]:  # subscription expirada
                app.logger.warning(f"Subscription push expirada/inválida para o usuário {user_id}. Removendo do banco de dados: {endpoint}")
                subscription = db.session.get(PushSubscription, subscription_id)
                if subscription:
                    db.session.delete(subscription)
                    db.session.commit()
            else:
                app.logger.error(f"Erro ao enviar notificação push para o usuário {user_id} ({endpoint}): {e}")
        except Exception as e:
            app.logger.error(f"Erro inesperado ao enviar notificação push para o usuário {user_id} ({endpoint}): {e}")


def send_push_to_user(user_id, message_payload, link_url='/', notification_title='Gerenciador de Projetos'):
    """
    Envia uma notificação push para todas as subscriptions de um usuário, cada uma
    em uma thread, sem bloquear a requisição.

    Retorna o número de envios disparados. Sem chaves VAPID configuradas nada é
    enviado e o retorno é 0.
    """
    vapid_public_key = current_app.config.get('VAPID_PUBLIC_KEY')
    vapid_private_key = current_app.config.get('VAPID_PRIVATE_KEY')
    vapid_claims = current_app.config.get('VAPID_CLAIMS')

    if not all([vapid_public_key, vapid_private_key, vapid_claims]):
        current_app.logger.debug("Chaves VAPID não configuradas. Notificação push ignorada.")
        return 0

    subscriptions = PushSubscription.query.filter_by(user_id=user_id).all()
    if not subscriptions:
        current_app.logger.info(f"Nenhuma subscription push encontrada para o usuário {user_id}.")
        return 0

    final_payload = {
        'title': message_payload.get('title', notification_title),
        'body': message_payload.get('body', 'Você tem uma nova notificação.'),
        'icon': message_payload.get('icon', '/static/images/icon-192x192.png'),
        'badge': message_payload.get('badge', '/static/images/icon-192x192.png'),
        'data': {
            'url': message_payload.get('url', link_url),
            'type': message_payload.get('type', 'generic'),
            'workspace_id': message_payload.get('workspace_id'),
            'post_id': message_payload.get('post_id')
        }
    }
    json_payload = json.dumps(final_payload)

    app = current_app._get_current_object()
    for subscription in subscriptions:
        thread = threading.Thread(
            target=_send_notification_async,
            args=(app, subscription.id, subscription.to_dict(), json_payload, vapid_private_key, vapid_claims, user_id)
        )
        thread.start()
    return len(subscriptions)
