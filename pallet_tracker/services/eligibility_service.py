# pallet_tracker/services/eligibility_service.py

"""
Определение положения этапа (участка) в маршруте детали.

Этап ищется в маршруте либо по самому этапу, либо по одному из его подэтапов.
Если этап встречается в маршруте несколько раз (повторная обработка),
учитывается только самое раннее вхождение.
"""

from collections import namedtuple
from sqlalchemy import or_

from pallet_tracker import db
from pallet_tracker.models import RouteStage, Substage


EligibilityContext = namedtuple('EligibilityContext', ['is_first', 'previous_stage_ids', 'route_stage_ids'])


def unrouted_part_is_first_stage():
    """
    Правило по умолчанию: деталь без маршрута (или с пустым маршрутом)
    считается готовой к обработке на любом этапе как на первом.
    """
    return True


def substage_ids_for_stage(stage_id):
    """Возвращает ID всех подэтапов этапа."""
    rows = db.session.query(Substage.id).filter(Substage.stage_id == stage_id).all()
    return {row.id for row in rows}


def _matches_stage(route_stage, stage_id, substage_ids):
    if route_stage.stage_id == stage_id:
        return True
    return route_stage.substage_id is not None and route_stage.substage_id in substage_ids


def _route_stages(part):
    if part.route is None:
        return []
    return list(part.route.route_stages)


def _min_matching_sequence(route_stages, stage_id, substage_ids):
    sequences = [rs.sequence_number for rs in route_stages if _matches_stage(rs, stage_id, substage_ids)]
    return min(sequences) if sequences else None


def is_first_stage(part, stage_id, substage_ids=None):
    """
    Проверяет, является ли этап первым в маршруте детали.
    :param part: Экземпляр Part.
    :param stage_id: ID этапа (участка).
    :param substage_ids: ID подэтапов этапа; если не заданы, берутся из справочника.
    :return: True, если самое раннее вхождение этапа совпадает с началом маршрута.
    """
    route_stages = _route_stages(part)
    if not route_stages:
        return unrouted_part_is_first_stage()

    if substage_ids is None:
        substage_ids = substage_ids_for_stage(stage_id)

    target_sequence = _min_matching_sequence(route_stages, stage_id, substage_ids)
    if target_sequence is None:
        return False
    return target_sequence == min(rs.sequence_number for rs in route_stages)


def previous_stages(part, stage_id, substage_ids=None):
    """
    Возвращает ID базовых этапов, стоящих в маршруте раньше указанного.
    Пустое множество, если этап первый или отсутствует в маршруте.
    """
    route_stages = _route_stages(part)
    if not route_stages:
        return set()

    if substage_ids is None:
        substage_ids = substage_ids_for_stage(stage_id)

    target_sequence = _min_matching_sequence(route_stages, stage_id, substage_ids)
    if target_sequence is None:
        return set()
    return {rs.stage_id for rs in route_stages if rs.sequence_number < target_sequence}


def route_stage_ids_for_stage(stage_id, substage_ids=None):
    """
    Находит позиции всех маршрутов, относящиеся к участку: по этапу
    или по одному из его подэтапов. Используется, чтобы ограничить выборку
    прогресса и назначений "этим участком" независимо от маршрута детали.
    """
    if substage_ids is None:
        substage_ids = substage_ids_for_stage(stage_id)

    conditions = [RouteStage.stage_id == stage_id]
    if substage_ids:
        conditions.append(RouteStage.substage_id.in_(substage_ids))
    rows = db.session.query(RouteStage.id).filter(or_(*conditions)).all()
    return {row.id for row in rows}


def resolve_stage_context(part, stage_id, substage_ids=None, route_stage_ids=None):
    """Собирает все сведения о положении этапа для классификации количеств."""
    if substage_ids is None:
        substage_ids = substage_ids_for_stage(stage_id)
    if route_stage_ids is None:
        route_stage_ids = route_stage_ids_for_stage(stage_id, substage_ids)
    return EligibilityContext(
        is_first=is_first_stage(part, stage_id, substage_ids),
        previous_stage_ids=previous_stages(part, stage_id, substage_ids),
        route_stage_ids=route_stage_ids
    )


def part_route_contains_stage(part, stage_id, substage_ids=None):
    """Проходит ли маршрут детали через этап (или его подэтапы)."""
    if substage_ids is None:
        substage_ids = substage_ids_for_stage(stage_id)
    return any(_matches_stage(rs, stage_id, substage_ids) for rs in _route_stages(part))
