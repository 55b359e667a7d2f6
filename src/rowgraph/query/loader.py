"""
Load and find orchestration: hooks, condition translation, composition and
reconstruction for one call.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional, Union

from ..hooks import LoadContext, hooks
from ..utils import get_logger
from .composer import QueryComposer
from .conditions import ConditionsTranslator
from .reconstructor import LoadMode, TupleReconstructor, VisitedKeys

if TYPE_CHECKING:
    from ..core.entity import Entity

logger = get_logger("query.loader")


class EntityLoader:
    def __init__(self, entity: "Entity") -> None:
        self.entity = entity

    def run(
        self,
        mode: LoadMode,
        conditions: Any = None,
        order: Any = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        *,
        visited: Optional[VisitedKeys] = None,
    ) -> Union[bool, List["Entity"]]:
        """
        ``LoadMode.THIS`` returns True/False; ``LoadMode.NEW`` returns the
        (possibly empty) list of materialized entities.
        """
        entity = self.entity
        not_found: Union[bool, List["Entity"]] = False if mode is LoadMode.THIS else []
        context = LoadContext(mode, conditions, order, limit, offset)
        if hooks.veto("before_load", entity, context):
            logger.debug("%s load vetoed by before_load", type(entity).__name__)
            return not_found

        translator = ConditionsTranslator(entity.attribute_map, entity.auto_conditions)
        translated = translator.translate(context.conditions)
        entity.last_conditions = translated
        queue = QueryComposer(entity).compose(
            translated, translator.translate_order(context.order), context.limit, context.offset
        )
        logger.debug("Composed %s select(s) for %s", len(queue), type(entity).__name__)

        reconstructor = TupleReconstructor(entity, mode, visited=visited)
        found = reconstructor.drain(queue)
        queue.clear()
        if not found:
            return not_found

        for instance in reconstructor.materialized:
            hooks.fire("after_load", instance, context)
        if mode is LoadMode.THIS:
            hooks.fire("after_load", entity, context)
            return True

        results = reconstructor.results
        for instance in results:
            hooks.fire("after_load", instance, context)
        hooks.fire("after_find", entity, context, results)
        return results
