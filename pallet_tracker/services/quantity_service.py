# pallet_tracker/services/quantity_service.py

"""
Классификация количества детали на участке:
- ready: поддоны прошли предыдущие этапы и готовы к обработке;
- distributed: поддоны распределены на станки и находятся в работе;
- completed: поддоны прошли обработку на этом участке.

Функции только читают данные и не меняют состояние сессии.
"""

from collections import namedtuple

from pallet_tracker.models import TaskStatus
from . import eligibility_service as eligibility
from . import progress_service as progress


StageQuantities = namedtuple('StageQuantities', ['ready', 'distributed', 'completed'])

_NOT_STARTED = (TaskStatus.PENDING, TaskStatus.NOT_PROCESSED)


def _classify_pallet(pallet, context):
    """
    Определяет корзину поддона на участке.
    :return: 'ready', 'distributed', 'completed' или None, если поддон еще не допущен.
    """
    segment_progress = progress.latest_stage_progress(pallet.id, context.route_stage_ids)
    assignments = progress.machine_assignments_for(pallet.id, context.route_stage_ids)
    active_assignment = next((a for a in assignments if a.completed_at is None), None)
    done_assignment = next((a for a in assignments if a.completed_at is not None), None)

    if segment_progress is not None:
        if segment_progress.status == TaskStatus.COMPLETED:
            return 'completed'
        if segment_progress.status == TaskStatus.IN_PROGRESS:
            return 'distributed'
        if segment_progress.status in _NOT_STARTED:
            if active_assignment is not None:
                return 'distributed'
            if assignments and done_assignment is None:
                # Назначение есть, но ни активного, ни завершенного, значит ждет на другом станке
                return None
            if context.is_first or progress.previous_stages_completed(pallet.id, context.previous_stage_ids):
                return 'ready'
        return None

    if active_assignment is not None:
        return 'distributed'
    if done_assignment is not None:
        return 'completed'
    if context.is_first:
        return 'ready'
    if progress.previous_stages_completed(pallet.id, context.previous_stage_ids):
        return 'ready'
    return None


def classify_part_with_context(part, context):
    """Считает количества детали для уже вычисленного контекста участка."""
    buckets = {'ready': 0, 'distributed': 0, 'completed': 0}
    for pallet in part.pallets:
        bucket = _classify_pallet(pallet, context)
        if bucket is not None:
            buckets[bucket] += pallet.quantity

    # Сумма по поддонам может превышать потребность детали
    limit = part.total_quantity
    return StageQuantities(
        ready=min(buckets['ready'], limit),
        distributed=min(buckets['distributed'], limit),
        completed=min(buckets['completed'], limit)
    )


def classify_part(part, stage_id, substage_ids=None):
    """
    Считает готовое, распределенное и выполненное количество детали на этапе.
    :param part: Экземпляр Part.
    :param stage_id: ID этапа (участка).
    :param substage_ids: ID подэтапов этапа (необязательно).
    :return: StageQuantities.
    """
    context = eligibility.resolve_stage_context(part, stage_id, substage_ids)
    return classify_part_with_context(part, context)


def classify_parts(parts, stage_id):
    """
    Считает количества для набора деталей на одном участке.
    Позиции маршрутов участка вычисляются один раз для всех деталей.
    :return: Словарь {part.id: StageQuantities}.
    """
    substage_ids = eligibility.substage_ids_for_stage(stage_id)
    route_stage_ids = eligibility.route_stage_ids_for_stage(stage_id, substage_ids)
    result = {}
    for part in parts:
        context = eligibility.resolve_stage_context(part, stage_id, substage_ids, route_stage_ids)
        result[part.id] = classify_part_with_context(part, context)
    return result


def quantities_to_dict(quantities):
    return {
        'readyForProcessing': quantities.ready,
        'distributed': quantities.distributed,
        'completed': quantities.completed,
    }
