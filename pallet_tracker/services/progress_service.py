# pallet_tracker/services/progress_service.py

from datetime import datetime, timezone

from pallet_tracker import db
from pallet_tracker.models import (PalletStageProgress, MachineAssignment, RouteStage, TaskStatus,
                                   PartRouteProgress, PartSegmentProgress, Pallet)


def latest_stage_progress(pallet_id, route_stage_ids):
    """
    Актуальная запись прогресса поддона среди указанных позиций маршрута.
    Актуальность определяется наибольшим id (порядком вставки), а не датой.
    :return: Экземпляр PalletStageProgress или None.
    """
    if not route_stage_ids:
        return None
    return PalletStageProgress.query.filter(
        PalletStageProgress.pallet_id == pallet_id,
        PalletStageProgress.route_stage_id.in_(route_stage_ids)
    ).order_by(PalletStageProgress.id.desc()).first()


def machine_assignments_for(pallet_id, route_stage_ids):
    """Все назначения поддона на станки для указанных позиций маршрута."""
    if not route_stage_ids:
        return []
    return MachineAssignment.query.filter(
        MachineAssignment.pallet_id == pallet_id,
        MachineAssignment.route_stage_id.in_(route_stage_ids)
    ).order_by(MachineAssignment.id).all()


def previous_stages_completed(pallet_id, previous_stage_ids):
    """
    Проверяет, что для КАЖДОГО предыдущего этапа у поддона есть запись COMPLETED.
    Этап определяется базовым stage_id, поэтому подходит любая его позиция или подэтап.
    """
    if not previous_stage_ids:
        return True
    rows = db.session.query(RouteStage.stage_id).join(
        PalletStageProgress, PalletStageProgress.route_stage_id == RouteStage.id
    ).filter(
        PalletStageProgress.pallet_id == pallet_id,
        PalletStageProgress.status == TaskStatus.COMPLETED,
        RouteStage.stage_id.in_(previous_stage_ids)
    ).distinct().all()
    return {row.stage_id for row in rows} >= set(previous_stage_ids)


def append_stage_progress(pallet_id, route_stage_id, status, completed_at=None):
    """Добавляет новую запись в журнал прохождения этапов поддоном."""
    progress = PalletStageProgress(
        pallet_id=pallet_id,
        route_stage_id=route_stage_id,
        status=status,
        completed_at=completed_at
    )
    db.session.add(progress)
    return progress


def pallets_completed_route_stages(part_id, route_stage_ids):
    """
    Сколько поддонов детали имеют запись COMPLETED хотя бы по одной из позиций
    и сколько поддонов всего.
    """
    total = Pallet.query.filter(Pallet.part_id == part_id).count()
    if not route_stage_ids:
        return 0, total
    completed = db.session.query(PalletStageProgress.pallet_id).join(
        Pallet, Pallet.id == PalletStageProgress.pallet_id
    ).filter(
        Pallet.part_id == part_id,
        PalletStageProgress.route_stage_id.in_(route_stage_ids),
        PalletStageProgress.status == TaskStatus.COMPLETED
    ).distinct().count()
    return completed, total


def _aggregate_status(completed, total):
    return TaskStatus.COMPLETED if total and completed >= total else TaskStatus.IN_PROGRESS


def upsert_part_route_progress(part_id, route_stage_id, completed_at=None):
    """Обновляет сводный статус детали по позиции маршрута после завершения поддона."""
    db.session.flush()
    completed, total = pallets_completed_route_stages(part_id, [route_stage_id])
    status = _aggregate_status(completed, total)

    progress = PartRouteProgress.query.filter_by(part_id=part_id, route_stage_id=route_stage_id).first()
    if progress is None:
        progress = PartRouteProgress(part_id=part_id, route_stage_id=route_stage_id)
        db.session.add(progress)
    progress.status = status
    progress.completed_at = (completed_at or datetime.now(timezone.utc)) if status == TaskStatus.COMPLETED else None
    return progress


def upsert_part_segment_progress(part_id, segment_id, route_stage_ids, completed_at=None):
    """Обновляет флаг завершения детали на участке."""
    db.session.flush()
    completed, total = pallets_completed_route_stages(part_id, route_stage_ids)
    status = _aggregate_status(completed, total)

    progress = PartSegmentProgress.query.filter_by(part_id=part_id, segment_id=segment_id).first()
    if progress is None:
        progress = PartSegmentProgress(part_id=part_id, segment_id=segment_id)
        db.session.add(progress)
    progress.status = status
    progress.completed_at = (completed_at or datetime.now(timezone.utc)) if status == TaskStatus.COMPLETED else None
    return progress
