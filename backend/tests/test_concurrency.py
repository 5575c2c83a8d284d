# Overview: Threaded redemption races against a file-backed SQLite database.

"""
Concurrency tests for redemption.

Every thread runs in its own app context with its own session, so the
database is the only thing deciding the winner.
"""
import os
import tempfile
import threading
import unittest

from qrewards import create_app
from qrewards.extensions import db
from qrewards.models import RewardToken, STATUS_REDEEMED
from qrewards.services import issuance_service
from qrewards.services.components import redemption_engine, reporter, token_store
from qrewards.services.errors import TokenAlreadyUsedError


class RedemptionConcurrencyTests(unittest.TestCase):
    THREADS = 12

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "ADMIN_PASSWORD": "concurrency-secret",
            "REWARD_POLICY": "fixed",
            "REWARD_AMOUNT_CENTS": 100,
            "STORE_TIMEOUT_SECONDS": 30.0,
            "STORE_RETRY_ATTEMPTS": 5,
            "STORE_RETRY_BACKOFF": 0.01,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _issue(self, count, batch_id="RACE"):
        with self.app.app_context():
            return issuance_service.issue_batch(
                token_store(), product_name="Race Product", batch_id=batch_id, count=count
            )

    def _race(self, token_ids):
        """Start one redeem per id at the same moment; collect outcomes."""
        results = []
        lock = threading.Lock()
        barrier = threading.Barrier(len(token_ids))

        def worker(token_id):
            with self.app.app_context():
                try:
                    barrier.wait()
                    result = redemption_engine().redeem(token_id)
                    with lock:
                        results.append(("won", token_id, result.amount_cents))
                except Exception as exc:
                    with lock:
                        results.append(("lost", token_id, exc))
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(t,)) for t in token_ids]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def test_single_token_has_one_winner(self):
        [token_id] = self._issue(1)

        results = self._race([token_id] * self.THREADS)

        winners = [r for r in results if r[0] == "won"]
        losers = [r for r in results if r[0] == "lost"]
        self.assertEqual(len(winners), 1)
        self.assertEqual(len(losers), self.THREADS - 1)
        for _, _, exc in losers:
            self.assertIsInstance(exc, TokenAlreadyUsedError)

        with self.app.app_context():
            row = db.session.query(RewardToken).filter_by(token=token_id).one()
            self.assertEqual(row.status, STATUS_REDEEMED)
            self.assertEqual(row.amount_cents, winners[0][2])
            self.assertIsNotNone(row.redeemed_at)

    def test_many_tokens_each_redeemed_once(self):
        token_ids = self._issue(4)

        # Three scans per token, interleaved
        results = self._race(token_ids * 3)

        won_ids = [r[1] for r in results if r[0] == "won"]
        self.assertEqual(sorted(won_ids), sorted(token_ids))
        for outcome, _, payload in results:
            if outcome == "lost":
                self.assertIsInstance(payload, TokenAlreadyUsedError)

        with self.app.app_context():
            stats = reporter().dashboard_stats()
        self.assertEqual(stats["total_issued"], 4)
        self.assertEqual(stats["redeemed_count"], 4)
        self.assertEqual(stats["remaining_count"], 0)
        self.assertEqual(stats["total_reward_paid"], 400)


if __name__ == "__main__":
    unittest.main()
