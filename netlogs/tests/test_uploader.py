import unittest
from unittest.mock import MagicMock

import requests

from netlogs.clients.uploader import DeliveryStatus, UploadClient


def response(status_code, body=None):
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.json.return_value = body if body is not None else {}
    mock_response.text = str(body)
    return mock_response


class TestUploadClient(unittest.TestCase):

    def make_client(self, *responses):
        self.session = MagicMock()
        self.session.post.side_effect = list(responses)
        self.sleep = MagicMock()
        return UploadClient(
            endpoint='logs.example.com/upload',
            timeout=5,
            max_attempts=3,
            initial_delay=2,
            verify_ssl=True,
            session=self.session,
            sleep=self.sleep,
        )

    def test_adds_scheme(self):
        client = self.make_client()
        self.assertEqual(client.endpoint, 'http://logs.example.com/upload')

    def test_delivered_first_try(self):
        client = self.make_client(response(200, {'success': True, 'inserted': 1}))
        outcome = client.deliver([{'timestamp': 't'}])
        self.assertEqual(outcome.status, DeliveryStatus.DELIVERED)
        self.assertEqual(outcome.attempts, 1)
        self.sleep.assert_not_called()

        kwargs = self.session.post.call_args.kwargs
        self.assertEqual(kwargs['json'], [{'timestamp': 't'}])
        self.assertEqual(kwargs['timeout'], 5)
        self.assertIn('X-Request-ID', kwargs['headers'])

    def test_retries_server_errors_with_doubling_backoff(self):
        client = self.make_client(response(500), response(503), response(200))
        outcome = client.deliver([{}])
        self.assertEqual(outcome.status, DeliveryStatus.DELIVERED)
        self.assertEqual(outcome.attempts, 3)
        self.assertEqual([c.args[0] for c in self.sleep.call_args_list], [2, 4])

    def test_same_request_id_across_retries(self):
        client = self.make_client(response(500), response(200))
        client.deliver([{}])
        ids = {c.kwargs['headers']['X-Request-ID'] for c in self.session.post.call_args_list}
        self.assertEqual(len(ids), 1)

    def test_duplicate_is_settled_without_retry(self):
        client = self.make_client(response(409, {'error': '1 of 1 entries already exist'}))
        outcome = client.deliver([{}])
        self.assertEqual(outcome.status, DeliveryStatus.DUPLICATE)
        self.assertTrue(outcome.settled)
        self.assertEqual(self.session.post.call_count, 1)

    def test_validation_rejection_is_not_retried(self):
        client = self.make_client(response(400, {'error': 'bad'}))
        outcome = client.deliver([{}])
        self.assertEqual(outcome.status, DeliveryStatus.REJECTED)
        self.assertEqual(outcome.message, 'bad')
        self.assertTrue(outcome.settled)
        self.sleep.assert_not_called()

    def test_non_retryable_server_error_is_rejected(self):
        client = self.make_client(response(500, {
            'error': 'Internal server error', 'category': 'internal_error', 'retryable': False,
        }))
        outcome = client.deliver([{}])
        self.assertEqual(outcome.status, DeliveryStatus.REJECTED)
        self.assertEqual(outcome.http_status, 500)
        self.assertTrue(outcome.settled)
        self.assertEqual(self.session.post.call_count, 1)
        self.sleep.assert_not_called()

    def test_retryable_server_error_is_retried(self):
        unavailable = response(500, {
            'error': 'Storage is temporarily unavailable', 'category': 'storage_unavailable', 'retryable': True,
        })
        client = self.make_client(unavailable, unavailable, unavailable)
        outcome = client.deliver([{}])
        self.assertEqual(outcome.status, DeliveryStatus.FAILED)
        self.assertFalse(outcome.settled)
        self.assertEqual(self.session.post.call_count, 3)

    def test_connection_errors_exhaust_attempts(self):
        error = requests.ConnectionError('connection refused')
        client = self.make_client(error, error, error)
        outcome = client.deliver([{}])
        self.assertEqual(outcome.status, DeliveryStatus.FAILED)
        self.assertFalse(outcome.settled)
        self.assertEqual(outcome.attempts, 3)
        self.assertEqual(self.sleep.call_count, 2)

    def test_non_json_error_body(self):
        bad_gateway = response(502)
        bad_gateway.json.side_effect = ValueError('no json')
        bad_gateway.text = '<html>Bad Gateway</html>'
        client = self.make_client(bad_gateway, bad_gateway, bad_gateway)
        outcome = client.deliver([{}])
        self.assertEqual(outcome.status, DeliveryStatus.FAILED)
        self.assertEqual(outcome.http_status, 502)
        self.assertIn('Bad Gateway', outcome.message)


if __name__ == '__main__':
    unittest.main()
