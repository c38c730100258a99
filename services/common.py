# services/common.py

from datetime import date, datetime
from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from extensions import db
from errors import ConflictError, ValidationError


def commit_primary(action):
    """
    Commit da escrita principal. Qualquer falha desfaz a transação e é propagada;
    violações de unicidade viram ConflictError.
    """
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.warning(f"Conflito de integridade ao {action}: {e.orig}")
        raise ConflictError() from e
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.error(f"Erro ao {action}.", exc_info=True)
        raise


def commit_secondary(action, warnings):
    """
    Commit de um efeito colateral (auditoria, notificações). A falha é registrada
    em warnings e não desfaz a escrita principal, já gravada.
    """
    try:
        db.session.commit()
        return True
    except SQLAlchemyError as e:
        db.session.rollback()
        message = f"Não foi possível {action}."
        current_app.logger.warning(f"{message} Erro: {e}", exc_info=True)
        warnings.append(message)
        return False


def clean_text(value, field, required=False, max_length=None):
    if value is None:
        text = ''
    elif isinstance(value, str):
        text = value.strip()
    else:
        raise ValidationError(f"O campo '{field}' deve ser um texto.")
    if not text:
        if required:
            raise ValidationError(f"O campo '{field}' é obrigatório.")
        return None
    if max_length and len(text) > max_length:
        raise ValidationError(f"O campo '{field}' deve ter no máximo {max_length} caracteres.")
    return text


def parse_date(value, field):
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"Data inválida para '{field}'. Use o formato AAAA-MM-DD.")


def parse_datetime(value, field):
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    try:
        text = str(value)
        if text.endswith('Z'):
            text = text[:-1]
        return datetime.fromisoformat(text).replace(tzinfo=None)
    except ValueError:
        raise ValidationError(f"Data/hora inválida para '{field}'.")


def parse_int(value, field, minimum=None, required=False):
    if value is None or value == '':
        if required:
            raise ValidationError(f"O campo '{field}' é obrigatório.")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"O campo '{field}' deve ser um número inteiro.")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"O campo '{field}' deve ser um número inteiro.")
    if minimum is not None and number < minimum:
        raise ValidationError(f"O campo '{field}' deve ser maior ou igual a {minimum}.")
    return number


def parse_id_list(value, field):
    """Lista de ids distintos, na ordem recebida."""
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"O campo '{field}' deve ser uma lista de ids.")
    ids = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ValidationError(f"O campo '{field}' contém um id inválido.")
        if item.strip() not in ids:
            ids.append(item.strip())
    return ids
