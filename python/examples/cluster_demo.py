import time

from cluster_log import Supervisor, init, shutdown

def worker(ctx, n):
    ctx.info(f"worker {ctx.worker_id} starting")
    for i in range(n):
        ctx.debug(f"tick {i}")
        time.sleep(0.05)
    ctx.notify("done", {"ticks": n})
    ctx.warn("worker exiting")

def main():
    ctx = init(service_name="cluster-demo")
    ctx.info("primary starting")

    def on_message(worker_id, envelope):
        ctx.info(f"control message {envelope.kind!r} from #{worker_id}: {dict(envelope.payload)}")

    with Supervisor(ctx, on_message=on_message) as sup:
        for _ in range(3):
            sup.spawn(worker, 5)
        sup.join()

    ctx.info("all workers finished")
    shutdown(ctx)

if __name__ == "__main__":
    main()
