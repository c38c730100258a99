# utils/changelog_utils.py

import json
from datetime import date, datetime

# Rótulos gravados no histórico de auditoria para cada campo editável da tarefa.
# Campos sem rótulo (ex.: display_order) usam a própria chave.
TASK_FIELD_LABELS = {
    'name': 'Título',
    'description': 'Descrição',
    'sector': 'Setor',
    'task_type': 'Tipo',
    'executor_ids': 'Executor',
    'validator_ids': 'Validador',
    'inform_ids': 'Informar',
    'start_date': 'Data de Inicio',
    'due_date_original': 'Prazo de Entrega',
    'due_date_current': 'Prazo de Entrega Atual',
    'estimated_minutes': 'Tempo de Execução estimado',
    'actual_minutes': 'Tempo de Execução efetivado',
    'priority': 'Prioridade',
    'status': 'Status da Tarefa',
}


def field_label(key):
    return TASK_FIELD_LABELS.get(key, key)


def serialize_value(value):
    """
    Representação textual de um valor para o histórico.
    None continua None, strings ficam como estão, datas viram ISO e o resto
    vira JSON compacto.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return json.dumps(value, ensure_ascii=False, separators=(',', ':'), sort_keys=True)


def diff_dicts(old_data, new_data):
    """
    Compara os campos presentes em new_data com os valores de old_data.
    Retorna {chave: {'old': ..., 'new': ...}} com os valores já serializados,
    apenas para as chaves cuja serialização mudou.
    """
    if old_data is None:
        old_data = {}
    if new_data is None:
        new_data = {}

    changed_fields = {}
    for key, new_value in new_data.items():
        old_serialized = serialize_value(old_data.get(key))
        new_serialized = serialize_value(new_value)
        if old_serialized != new_serialized:
            changed_fields[key] = {'old': old_serialized, 'new': new_serialized}
    return changed_fields


def build_audit_entries(old_data, new_data, changed_by):
    """Uma entrada por campo alterado, no formato das colunas de TaskAuditLog."""
    entries = []
    for key, values in diff_dicts(old_data, new_data).items():
        entries.append({
            'field': field_label(key),
            'old_value': values['old'],
            'new_value': values['new'],
            'changed_by': changed_by,
        })
    return entries
