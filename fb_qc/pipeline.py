"""Producer/consumer run loop over the read pairs"""
import threading
import time
from collections import deque
from itertools import islice
from queue import Full, Queue

from multiprocess import Pool

from fb_qc.processing import Aggregator
from fb_qc.constants import BATCH_SIZE, PROGRESS_EVERY, EXACT, APPROXIMATE


def put_unless_stopped(queue: Queue, item, stop: threading.Event) -> bool:
    """Put an item in the queue, giving up once `stop` is set"""
    while not stop.is_set():
        try:
            queue.put(item, timeout=0.1)
            return True
        except Full:
            continue
    return False


def batch_producer(pairs, batch_size: int, queue: Queue, stop: threading.Event):
    """
    Producer function that reads the read pairs and puts them in the queue in batches.

    An exception raised while reading is put in the queue in place of a batch.
    The end of the input is signaled with None. Once `stop` is set, reading
    ends and the read pairs iterator is closed.
    """
    iterator = None
    try:
        iterator = iter(pairs)
        while not stop.is_set():
            batch = list(islice(iterator, batch_size))
            if not batch:
                break
            put_unless_stopped(queue, batch, stop)
    except Exception as err:  # pylint: disable=broad-except
        put_unless_stopped(queue, err, stop)
    finally:
        close = getattr(iterator, "close", None)
        if close is not None:
            close()
    put_unless_stopped(queue, None, stop)


def iter_batches(pairs, batch_size: int, max_queued: int):
    """Yield batches of read pairs decoded by a background thread.

    At most `max_queued` batches wait in the queue, so the reader cannot
    run ahead of the consumer. Closing the generator stops the reader.
    """
    queue = Queue(maxsize=max_queued)
    stop = threading.Event()
    producer = threading.Thread(
        target=batch_producer, args=(pairs, batch_size, queue, stop), daemon=True
    )
    producer.start()
    try:
        while True:
            batch = queue.get()
            if batch is None:
                break
            if isinstance(batch, Exception):
                raise batch
            yield batch
    finally:
        stop.set()
        producer.join()


# Read-only match engine of a worker process, set once by `init_worker`
_worker_engine = None


def init_worker(engine):
    """Give a worker process its copy of the match engine"""
    global _worker_engine  # pylint: disable=global-statement
    _worker_engine = engine


def count_batch(batch) -> Aggregator:
    """Worker function that counts one batch into its own shard"""
    return _worker_engine.count(batch)


class ProgressPrinter:
    """Observer printing the progress of the run every `every` read pairs"""

    def __init__(self, every: int = PROGRESS_EVERY):
        self.every = every
        self.next_report = every
        self.start = time.time()

    def __call__(self, aggregator: Aggregator, n_pairs: int):
        if n_pairs < self.next_report:
            return
        while self.next_report <= n_pairs:
            self.next_report += self.every
        mapped = aggregator.outcomes[EXACT] + aggregator.outcomes[APPROXIMATE]
        print(
            f"Processed {n_pairs:,} read pairs in {time.time() - self.start:.1f} seconds. "
            f"Mapped: {mapped:,}, cells: {aggregator.n_cells:,}"
        )


def run(
    pairs,
    engine,
    n_threads: int = 1,
    batch_size: int = BATCH_SIZE,
    observers=(),
) -> Aggregator:
    """Count all the read pairs.

    Read pairs are decoded in a background thread. With a single thread the
    batches are counted in this process, otherwise each batch is counted
    into its own Aggregator by a worker process and the shards are merged
    in submission order.

    Args:
        pairs (iterable): (cell code, barcode) pairs, usually a ReadPairSource
        engine (MatchEngine): Resolves the pairs
        n_threads (int): Number of worker processes
        batch_size (int): Read pairs per batch
        observers (iterable): Callables notified with the aggregator and the
            number of processed pairs after each batch

    Returns:
        Aggregator: Counts of all the read pairs
    """
    aggregator = Aggregator()
    max_pending = 2 * max(n_threads, 1)
    n_pairs = 0

    def notify(batch_length):
        nonlocal n_pairs
        n_pairs += batch_length
        for observer in observers:
            observer(aggregator, n_pairs)

    batches = iter_batches(pairs, batch_size, max_queued=max_pending)
    try:
        if n_threads <= 1:
            for batch in batches:
                engine.count(batch, aggregator)
                notify(len(batch))
            return aggregator

        with Pool(n_threads, initializer=init_worker, initargs=(engine,)) as pool:
            pending = deque()
            for batch in batches:
                pending.append((len(batch), pool.apply_async(count_batch, (batch,))))
                if len(pending) >= max_pending:
                    batch_length, result = pending.popleft()
                    aggregator.merge(result.get())
                    notify(batch_length)
            while pending:
                batch_length, result = pending.popleft()
                aggregator.merge(result.get())
                notify(batch_length)
        return aggregator
    finally:
        batches.close()
