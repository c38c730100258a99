# utils/mail_utils.py

from flask import current_app
from flask_mail import Message
from itsdangerous import URLSafeTimedSerializer, SignatureExpired, BadSignature
from extensions import mail

INVITE_SALT = 'invite-salt'


def send_notification_email(recipient_email, subject, body, html_body=None):
    """Envia um e-mail de notificação. Retorna False em caso de falha."""
    try:
        msg = Message(subject,
                      sender=current_app.config['MAIL_DEFAULT_SENDER'],
                      recipients=[recipient_email])
        msg.body = body
        if html_body:
            msg.html = html_body
        mail.send(msg)
        current_app.logger.info(f"Email de notificação enviado para {recipient_email} com assunto '{subject}'.")
        return True
    except Exception as e:
        current_app.logger.error(f"Erro ao enviar email de notificação para {recipient_email}: {e}", exc_info=True)
        return False


def _invite_serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=INVITE_SALT)


def generate_invite_token(user):
    return _invite_serializer().dumps({'user_id': user.id, 'email': user.email})


def verify_invite_token(token):
    """Retorna o payload do convite ou None se o token for inválido ou tiver expirado."""
    max_age = current_app.config.get('INVITE_TOKEN_MAX_AGE', 7 * 24 * 3600)
    try:
        return _invite_serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        current_app.logger.warning("Token de convite expirado.")
        return None
    except BadSignature:
        current_app.logger.warning("Token de convite inválido.")
        return None


def invite_link(token):
    base_url = current_app.config.get('APP_BASE_URL', 'http://localhost:5000').rstrip('/')
    return f"{base_url}/invite/accept/{token}"


def send_invite_email(user, inviter=None):
    token = generate_invite_token(user)
    inviter_name = inviter.display_name if inviter is not None else 'Um administrador'
    body = f'''Olá,

{inviter_name} convidou você para o Gerenciador de Projetos.

Para aceitar o convite e definir sua senha, visite o seguinte link:
{invite_link(token)}

Se você não esperava este convite, ignore este e-mail.
'''
    return send_notification_email(user.email, 'Convite - Gerenciador de Projetos', body)
