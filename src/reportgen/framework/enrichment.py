"""
Parameter enrichment.

Turns caller input into the full parameter map a report needs, in three
steps:

1. **Normalize:** triples or a ``ParameterRequest`` become a ``ParameterMap``
   (structural problems are fatal)
2. **Gap-fill:** parameters the primary source declares but the caller did
   not supply get synthesized defaults (best effort)
3. **Derive:** human-readable names for month, period, charge type,
   settlement and organization (each derivation isolated)

Enrichment is additive. Existing keys are never overwritten, and running
``enrich`` again on its own output changes nothing.

Architecture:
    ::

        raw triples ──normalize──▶ ParameterMap ──gap-fill──▶ ──derive──▶ ParameterMap
                                                    │             │
                                     DataSource.get_declared_parameters
                                                                  └── LookupService

Tags:
    parameters, enrichment, lookups, reportgen

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from reportgen.core.errors import ErrorCode, ReportAbortedError
from reportgen.core.params import (
    ParameterMap,
    ParameterRequest,
    ParamType,
    default_for,
    normalize_parameters,
)
from reportgen.core.settings import EnrichmentLabels
from reportgen.framework.arbitration import ErrorArbiter, ErrorReporter
from reportgen.framework.logging import get_logger
from reportgen.framework.sources.protocol import DataSource, LookupService

logger = get_logger(__name__)

RawParameters = ParameterRequest | ParameterMap | Sequence[Any] | None


def split_codes(value: Any) -> list[str]:
    """``"1, 2,,3"`` → ``["1", "2", "3"]``. ``None`` and blanks → ``[]``."""
    if value is None:
        return []
    return [part.strip() for part in str(value).split(",") if part.strip()]


class ParameterEnricher:
    """Normalizes, gap-fills and derives report parameters."""

    def __init__(
        self,
        data_source: DataSource,
        lookups: LookupService,
        reporter: ErrorReporter | None = None,
        labels: EnrichmentLabels | None = None,
    ):
        self.data_source = data_source
        self.lookups = lookups
        self.reporter = reporter or ErrorArbiter()
        self.labels = labels or EnrichmentLabels()

    def enrich(
        self,
        report_name: str,
        primary_source: str | None,
        raw_parameters: RawParameters,
        *,
        reporter: ErrorReporter | None = None,
    ) -> ParameterMap:
        """
        Build the enriched parameter map.

        Raises:
            ParameterError: Malformed caller input.
            ReportAbortedError: Arbitration refused to continue after a warning.
        """
        reporter = reporter or self.reporter
        params = self._normalize(raw_parameters)
        before = len(params)

        if primary_source:
            self._fill_gaps(primary_source, params, reporter)

        self._derive(params, reporter)

        logger.debug(
            "enrichment.completed",
            report=report_name,
            supplied=before,
            total=len(params),
        )
        return params

    @staticmethod
    def _normalize(raw: RawParameters) -> ParameterMap:
        if raw is None:
            return ParameterMap()
        if isinstance(raw, ParameterRequest):
            return raw.parameters.copy()
        if isinstance(raw, ParameterMap):
            return raw.copy()
        return normalize_parameters(raw)

    # ------------------------------------------------------------------ #
    # Gap-fill
    # ------------------------------------------------------------------ #

    def _fill_gaps(self, source: str, params: ParameterMap, reporter: ErrorReporter) -> None:
        try:
            declared = self.data_source.get_declared_parameters(source)
        except Exception as e:
            self._warn(
                reporter,
                ErrorCode.PARAMETERS_MISSING,
                f"Could not read declared parameters of '{source}'; using supplied parameters only",
                e,
            )
            return

        for declared_param in declared:
            name = declared_param.name.lstrip("@")
            if name in params:
                continue
            param_type = declared_param.param_type
            params.add(name, default_for(param_type, declared_param.nullable), param_type)
            logger.debug("enrichment.gap_filled", parameter=name, type=param_type.name)

    # ------------------------------------------------------------------ #
    # Derivations
    # ------------------------------------------------------------------ #

    def _derive(self, params: ParameterMap, reporter: ErrorReporter) -> None:
        derivations: list[tuple[ErrorCode, Callable[[ParameterMap], None]]] = [
            (ErrorCode.DB_MONTH_NAME_NOT_FOUND, self._derive_month),
            (ErrorCode.DB_CHARGE_TYPE_NAME_NOT_FOUND, self._derive_charge_type),
            (ErrorCode.DB_SETTLEMENT_NAME_NOT_FOUND, self._derive_settlement),
            (ErrorCode.DB_ORGANIZATION_NAME_NOT_FOUND, self._derive_organization),
        ]
        for code, derive in derivations:
            try:
                derive(params)
                logger.debug("enrichment.derive", derivation=derive.__name__.removeprefix("_derive_"))
            except Exception as e:
                self._warn(reporter, code, f"Derivation {derive.__name__.removeprefix('_derive_')} failed: {e}", e)

    def _derive_month(self, params: ParameterMap) -> None:
        labels = self.labels
        value = params.value(labels.month_param)
        if value is None or str(value).strip() == "":
            return
        month = int(value)
        if labels.month_name_param not in params:
            params.add(labels.month_name_param, self.lookups.month_name(month), ParamType.STRING)
        if labels.period_name_param not in params:
            params.add(labels.period_name_param, self.lookups.period_name(month), ParamType.STRING)

    def _derive_charge_type(self, params: ParameterMap) -> None:
        labels = self.labels
        if labels.charge_type_name_param in params:
            return
        name = self._coded_name(
            params,
            (labels.charge_type_param, labels.charge_type_list_param),
            self.lookups.charge_type_name,
            multiple=labels.multiple_charge_types,
            absent=labels.all_charge_types,
        )
        params.add(labels.charge_type_name_param, name, ParamType.STRING)

    def _derive_settlement(self, params: ParameterMap) -> None:
        labels = self.labels
        if labels.settlement_name_param in params:
            return
        name = self._coded_name(
            params,
            (labels.settlement_param,),
            self.lookups.settlement_name,
            multiple=labels.multiple_settlements,
            absent=labels.all_settlements,
        )
        params.add(labels.settlement_name_param, name, ParamType.STRING)

    def _derive_organization(self, params: ParameterMap) -> None:
        name_param = self.labels.organization_name_param
        if name_param not in params:
            params.add(name_param, self.lookups.organization_name(), ParamType.STRING)

    @staticmethod
    def _coded_name(
        params: ParameterMap,
        keys: Sequence[str],
        lookup: Callable[[int], str],
        *,
        multiple: str,
        absent: str,
    ) -> str:
        """
        Single code → looked-up name; several codes → ``multiple``; none → ``absent``.

        ``keys`` are tried in order; the first one holding at least one code wins.
        """
        for key in keys:
            codes = split_codes(params.value(key))
            if len(codes) > 1:
                return multiple
            if codes:
                return lookup(int(codes[0]))
        return absent

    def _warn(self, reporter: ErrorReporter, code: ErrorCode, message: str, exc: BaseException) -> None:
        if not reporter.warning(code, message, exception=exc):
            raise ReportAbortedError(message, code=code, cause=exc)
