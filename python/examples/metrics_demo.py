import time

from opentelemetry import metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader

from cluster_log import Supervisor, init, shutdown

reader = PeriodicExportingMetricReader(ConsoleMetricExporter(), export_interval_millis=1000)
metrics.set_meter_provider(MeterProvider(metric_readers=[reader]))

def worker(ctx):
    for i in range(10):
        ctx.info(f"event {i}")
        if i % 4 == 0:
            ctx.error("simulated failure")

def main():
    ctx = init(service_name="py-metrics", stream="stderr")
    with Supervisor(ctx) as sup:
        sup.spawn(worker)
        sup.spawn(worker)
        sup.join()
    time.sleep(1.5)
    shutdown(ctx)

if __name__ == "__main__":
    main()
