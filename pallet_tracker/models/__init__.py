# pallet_tracker/models/__init__.py

# Этот файл собирает все модели из отдельных файлов в одно пространство имен,
# чтобы их можно было удобно импортировать в других частях приложения.
# Например: from pallet_tracker.models import Pallet, RouteStage

from .user_models import User, UserRole
from .route_models import Stage, Substage, Route, RouteStage
from .order_models import Order, OrderStatus, Package, PackagePart
from .part_models import Part, PartStatus, Pallet
from .machine_models import (Machine, MachineStatus, MachineAssignment, OperationStatus,
                             PartMachinePriority, machine_stages, machine_substages)
from .buffer_models import Buffer, BufferCell, BufferCellStatus
from .history_models import (PalletStageProgress, PartRouteProgress, PartSegmentProgress,
                             AuditLog, TaskStatus)
