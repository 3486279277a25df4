"""Wait for background jobs started by a request to be done.

The poller only reads snapshots of the job queue: any job state other
than "active" or "inactive" counts as done, failed jobs included. A test
that needs all of its N jobs must check the length of the result.
"""
import logging
import time
from dataclasses import dataclass
from typing import Iterable, Protocol

import redis

from apitest.config import get_settings

logger = logging.getLogger(__name__)

PENDING_STATES = ("active", "inactive")


@dataclass(frozen=True)
class Job:
    id: str
    state: str
    created: float
    task: str

    @classmethod
    def from_mapping(cls, info):
        return cls(
            id=str(info["id"]),
            state=info["state"],
            created=float(info["created"]),
            task=info["task"],
        )

    @property
    def pending(self):
        return self.state in PENDING_STATES


class JobQueue(Protocol):

    def jobs(self, task: str) -> Iterable[Job]:
        ...


class RedisJobQueue(object):
    """
    Job records kept in redis.

    Ids of the jobs of a task are in the sorted set ``<ns>:task:<task>``
    (scored by creation time), each job is the hash ``<ns>:job:<id>`` with
    the fields state, created and task.

    Minion itself does not write this layout (the deployment runs it on
    its Postgres backend): the keys have to be filled by whatever mirrors
    job records for tests. Any object with a ``jobs(task)`` method can be
    given to JobPoller or get_jobs instead.
    """

    def __init__(self, client, namespace="minion"):
        self.client = client
        self.namespace = namespace

    @classmethod
    def from_url(cls, url=None, namespace=None):
        settings = get_settings()
        client = redis.Redis.from_url(url or settings.redis_url, decode_responses=True)
        return cls(client, namespace or settings.jobs_namespace)

    def task_key(self, task):
        return f"{self.namespace}:task:{task}"

    def job_key(self, job_id):
        return f"{self.namespace}:job:{job_id}"

    def jobs(self, task):
        for job_id in self.client.zrange(self.task_key(task), 0, -1):
            info = self.client.hgetall(self.job_key(job_id))
            if not info:
                # removed since listed
                continue
            yield Job.from_mapping({"id": job_id, **info})

    def close(self):
        self.client.close()


class JobPoller(object):

    def __init__(self, queue: JobQueue, interval=2, sleep=time.sleep):
        self.queue = queue
        self.interval = interval
        self.sleep = sleep
        self.waited = 0

    def poll(self, task_name, created_after_ts, max_waiting_time):
        """
        Poll the queue until the jobs of a task created at or after
        created_after_ts are all done, or max_waiting_time is spent.

        Returns:
            list: the done jobs, sorted by creation time. On timeout, only
            the jobs that were done by then.
        """
        self.waited = 0
        run_jobs = {}
        while True:
            jobs_complete = True
            for job in self.queue.jobs(task_name):
                if job.id in run_jobs:
                    continue
                if job.created < created_after_ts:
                    continue
                if job.pending:
                    jobs_complete = False
                else:
                    run_jobs[job.id] = job
            if jobs_complete or self.waited >= max_waiting_time:
                break
            logger.debug("jobs of %s still pending, waited %ss", task_name, self.waited)
            self.sleep(self.interval)
            self.waited += self.interval

        if not jobs_complete:
            logger.info("gave up waiting for jobs of %s after %ss", task_name, self.waited)
        # predictable order
        return sorted(run_jobs.values(), key=lambda job: job.created)


def get_jobs(task_name, created_after_ts, max_waiting_time, queue=None, sleep=time.sleep):
    """Wait for the jobs of a task, see JobPoller.poll."""
    if queue is None:
        queue = RedisJobQueue.from_url()
    return JobPoller(queue, sleep=sleep).poll(task_name, created_after_ts, max_waiting_time)
