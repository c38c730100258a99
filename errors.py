# errors.py
"""
Exceções de domínio levantadas pelos serviços.

Cada exceção carrega o status HTTP que o handler registrado em create_app()
devolve no JSON {'success': False, 'message': ...}.
"""

# Mensagem única para qualquer negação, seja falta de permissão ou registro
# inexistente, para não revelar a existência de dados de outros workspaces.
UNAUTHORIZED_MESSAGE = 'Você não tem permissão para realizar esta ação.'


class GestaoError(Exception):
    status_code = 400
    default_message = 'Não foi possível concluir a operação.'

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        payload = {'success': False, 'message': self.message, 'error': self.__class__.__name__}
        if self.details:
            payload['details'] = self.details
        return payload


class Unauthorized(GestaoError):
    status_code = 403
    default_message = UNAUTHORIZED_MESSAGE


class NotFound(GestaoError):
    status_code = 404
    default_message = 'Registro não encontrado.'


class ValidationError(GestaoError):
    status_code = 400
    default_message = 'Dados inválidos.'


class ConflictError(GestaoError):
    status_code = 409
    default_message = 'Já existe um registro com estes dados.'


class UpstreamError(GestaoError):
    status_code = 502
    default_message = 'Falha ao comunicar com um serviço externo.'
