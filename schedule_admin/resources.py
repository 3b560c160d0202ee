"""
Resource services for the academic entities (units, programs, subjects, cycles, enrollments,
students, schedule slots, general programming, groups, classrooms, teachers).
Thin CRUD over the request executor; envelope unwrapping lives here, not in the core.
"""
from typing import Any

from schedule_admin.executor import RequestExecutor


def unwrap(envelope: Any) -> list:
    """
    List payload out of a response envelope.
    Tries the top-level array, then .data, then .data.data; anything else is an empty list.
    """
    if isinstance(envelope, list):
        return envelope
    if isinstance(envelope, dict):
        data = envelope.get("data")
        if isinstance(data, list):
            return data
        if isinstance(data, dict) and isinstance(data.get("data"), list):
            return data["data"]
    return []


def unwrap_one(envelope: Any) -> Any:
    """Single record: the object under .data when the backend wrapped it, else the body as-is."""
    if isinstance(envelope, dict) and isinstance(envelope.get("data"), dict):
        return envelope["data"]
    return envelope


class ResourceService:
    def __init__(self, executor: RequestExecutor, path: str, search_path: str | None = None):
        self.executor = executor
        self.path = "/" + path.strip("/")
        # Some resources search on /<path>/search?q=, others filter the collection with ?q=
        self.search_path = search_path

    def _item(self, item_id: int | str) -> str:
        return f"{self.path}/{item_id}"

    async def get_all(self, **params: Any) -> list:
        return unwrap(await self.executor.get(self.path, params=params or None))

    async def search(self, query: str) -> list:
        if self.search_path:
            return unwrap(await self.executor.get(f"{self.path}/{self.search_path}", params={"q": query}))
        return await self.get_all(q=query)

    async def list_by(self, segment: str, value: int | str) -> list:
        """Filtered collection, e.g. list_by("programa", 3) -> GET /grupos/programa/3."""
        return unwrap(await self.executor.get(f"{self.path}/{segment}/{value}"))

    async def get(self, item_id: int | str) -> Any:
        return unwrap_one(await self.executor.get(self._item(item_id)))

    async def create(self, payload: dict) -> Any:
        return unwrap_one(await self.executor.post(self.path, payload))

    async def update(self, item_id: int | str, payload: dict) -> Any:
        return unwrap_one(await self.executor.put(self._item(item_id), payload))

    async def delete(self, item_id: int | str) -> None:
        await self.executor.delete(self._item(item_id))


class DocenteService(ResourceService):
    async def sobreasignacion(self, item_id: int | str) -> Any:
        """Overload check for a teacher: {"sobreasignado": bool, "mensaje": str}."""
        return unwrap_one(await self.executor.get(f"{self._item(item_id)}/sobreasignacion"))


class AulaService(ResourceService):
    async def disponibles(self) -> list:
        return unwrap(await self.executor.get(f"{self.path}/disponibles"))

    async def disponibilidad(self, item_id: int | str) -> Any:
        return unwrap_one(await self.executor.get(f"{self._item(item_id)}/disponibilidad"))


class CicloService(ResourceService):
    async def actual(self) -> Any:
        return unwrap_one(await self.executor.get(f"{self.path}/actual"))


class MatriculaService(ResourceService):
    async def buscar_por_fecha(self, fecha_inicio: str, fecha_fin: str | None = None) -> list:
        params = {"fechaInicio": fecha_inicio}
        if fecha_fin:
            params["fechaFin"] = fecha_fin
        return unwrap(await self.executor.get(f"{self.path}/buscar-por-fecha", params=params))


class ProgramacionHorarioService(ResourceService):
    async def verificar_disponibilidad(self, slot: dict) -> Any:
        """Slot is {fecha, horaInicio, horaFin, idAula?, idDocente?}; returns {disponible, mensaje?}."""
        return unwrap_one(await self.executor.post(f"{self.path}/verificar-disponibilidad", slot))

    async def rango_fechas(self, fecha_inicio: str, fecha_fin: str) -> list:
        params = {"fechaInicio": fecha_inicio, "fechaFin": fecha_fin}
        return unwrap(await self.executor.get(f"{self.path}/rango-fechas", params=params))


# name -> (collection path, search sub-path or None)
ENDPOINTS: dict[str, tuple[str, str | None]] = {
    "unidades_academicas": ("unidades-academicas", "search"),
    "programas": ("programs", None),
    "asignaturas": ("asignaturas", None),
    "ciclos": ("ciclos", None),
    "matriculas": ("matriculas", None),
    "estudiantes": ("estudiantes", None),
    "programacion_horarios": ("programacion-horarios", None),
    "programacion_general": ("programacion-general", None),
    "grupos": ("grupos", None),
    "aulas": ("aulas", None),
    "docentes": ("docentes", "search"),
}

_SERVICE_CLASSES: dict[str, type[ResourceService]] = {
    "docentes": DocenteService,
    "aulas": AulaService,
    "ciclos": CicloService,
    "matriculas": MatriculaService,
    "programacion_horarios": ProgramacionHorarioService,
}


def services(executor: RequestExecutor) -> dict[str, ResourceService]:
    return {
        name: _SERVICE_CLASSES.get(name, ResourceService)(executor, path, search_path=search)
        for name, (path, search) in ENDPOINTS.items()
    }
