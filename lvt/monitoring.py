# lvt/monitoring.py
import time
import psutil
import socket
from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry
from prometheus_client.exposition import make_wsgi_app
from wsgiref.simple_server import make_server, WSGIServer
from socketserver import ThreadingMixIn
import threading
import logging

logger = logging.getLogger(__name__)


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """WSGI server handling metric scrapes off the main thread."""
    allow_reuse_address = True


class Monitor:
    def __init__(self, ledger=None, host="127.0.0.1", port=9090, serve=False):
        self.ledger = ledger
        self.host = host
        self.port = port
        self.server = None
        self.thread = None

        # Isolated registry so several ledgers can live in one process
        self.registry = CollectorRegistry()

        self.instruction_counter = Counter('lvt_instructions_total', 'Instructions processed', ['instruction', 'status'], registry=self.registry)
        self.instruction_latency = Histogram('lvt_instruction_latency_seconds', 'Time to apply an instruction', ['instruction'], registry=self.registry)
        self.fee_rate = Gauge('lvt_fee_rate', 'Current protocol fee rate', registry=self.registry)
        self.reward_multiplier = Gauge('lvt_global_reward_multiplier', 'Global reward multiplier', registry=self.registry)
        self.total_trades = Gauge('lvt_total_trades', 'Trades recorded', registry=self.registry)
        self.total_liquidity = Gauge('lvt_total_liquidity', 'Cumulative traded amount', registry=self.registry)
        self.reward_window = Gauge('lvt_reward_window_samples', 'Samples in the current reward window', registry=self.registry)
        self.cpu_usage = Gauge('system_cpu_percent', 'Current CPU usage percent', registry=self.registry)
        self.memory_usage = Gauge('system_memory_percent', 'Current memory usage percent', registry=self.registry)

        if serve:
            self.start_server()

    def start_server(self, max_retries: int = 5, retry_delay: float = 2):
        """Start the Prometheus HTTP endpoint in a daemon thread."""
        app = make_wsgi_app(self.registry)

        for attempt in range(max_retries):
            try:
                self.server = make_server(self.host, self.port, app, ThreadingWSGIServer)
                self.server.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

                self.thread = threading.Thread(target=self.server.serve_forever)
                self.thread.daemon = True
                self.thread.start()
                logger.info(f"Prometheus server started on http://{self.host}:{self.port}")
                return
            except OSError as e:
                if e.errno == 98 and attempt < max_retries - 1:  # Address already in use
                    logger.warning(f"Port {self.port} in use, retrying in {retry_delay}s (attempt {attempt+1}/{max_retries})...")
                    time.sleep(retry_delay)
                else:
                    logger.error(f"Failed to bind metrics server to port {self.port}: {e}")
                    raise

    def stop_server(self):
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
            logger.info("Prometheus server stopped.")

    def update(self):
        """Refresh gauges from committed ledger state."""
        if self.ledger is not None:
            state = self.ledger.store.get_global()
            if state is not None:
                self.fee_rate.set(state.fee_rate)
                self.reward_multiplier.set(state.global_reward_multiplier)
                self.total_trades.set(state.total_trades)
                self.total_liquidity.set(state.total_liquidity)
                self.reward_window.set(state.reward_count)

        self.cpu_usage.set(psutil.cpu_percent())
        self.memory_usage.set(psutil.virtual_memory().percent)

    def record_instruction(self, name: str, status: str, latency: float):
        self.instruction_counter.labels(instruction=name, status=status).inc()
        self.instruction_latency.labels(instruction=name).observe(latency)
