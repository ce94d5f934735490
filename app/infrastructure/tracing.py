"""OpenTelemetry export for completion and memory calls.

Backends:
- local: OTLP gRPC collector (e.g. Aspire dashboard)
- appinsights: Azure Application Insights
"""

import logging
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


def _otlp_exporters(endpoint: str) -> List[Any]:
    from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
    from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

    return [
        OTLPSpanExporter(endpoint=endpoint),
        OTLPLogExporter(endpoint=endpoint),
        OTLPMetricExporter(endpoint=endpoint),
    ]


def _azure_monitor_exporters(connection_string: str) -> List[Any]:
    # Exporters only; configure_azure_monitor() adds auto-instrumentation
    from azure.monitor.opentelemetry.exporter import (
        AzureMonitorLogExporter,
        AzureMonitorMetricExporter,
        AzureMonitorTraceExporter,
    )

    return [
        AzureMonitorTraceExporter(connection_string=connection_string),
        AzureMonitorLogExporter(connection_string=connection_string),
        AzureMonitorMetricExporter(connection_string=connection_string),
    ]


def _install(exporters: List[Any], enable_sensitive_data: bool) -> None:
    from agent_framework.observability import configure_otel_providers

    configure_otel_providers(exporters=exporters, enable_sensitive_data=enable_sensitive_data)


def configure_tracing(
    backend: str,
    appinsights_connection_string: Optional[str] = None,
    otlp_endpoint: str = "http://localhost:4317",
    enable_sensitive_data: bool = False,
) -> None:
    """Install OpenTelemetry providers for the selected backend.

    Chat clients pick the providers up for every reply, summary and title
    call. Prompt and completion text is only recorded when
    ``enable_sensitive_data`` is set.

    Args:
        backend: "disabled", "local" or "appinsights"
        appinsights_connection_string: Required for the appinsights backend
        otlp_endpoint: Collector endpoint for the local backend
        enable_sensitive_data: Record message content in spans
    """
    if backend == "disabled":
        logger.info("Tracing is disabled")
        return

    if backend == "local":
        exporters = _otlp_exporters(otlp_endpoint)
        target = f"OTLP collector at {otlp_endpoint}"
    elif backend == "appinsights":
        if not appinsights_connection_string:
            logger.warning("App Insights connection string not provided, tracing disabled")
            return
        exporters = _azure_monitor_exporters(appinsights_connection_string)
        target = "Azure Application Insights"
    else:
        logger.warning(f"Unknown tracing backend: {backend}, tracing disabled")
        return

    _install(exporters, enable_sensitive_data)
    logger.info(f"Tracing configured for {target}")
