from __future__ import annotations

import unittest

from leather_portal.errors import ValidationFailed
from leather_portal.forms import decode_form
from leather_portal.schemas import QuoteRequestUpdate


class DecodeFormTests(unittest.TestCase):
    def test_nested_keys_keep_string_values(self) -> None:
        decoded = decode_form(
            [
                ('status', 'approved'),
                ('lcDetails.bankName', 'Trade Bank'),
                ('lcDetails[documentsUploaded]', 'true'),
                ('paymentDetails[customTerms]', 'Net 30'),
            ]
        )
        self.assertEqual(
            decoded,
            {
                'status': 'approved',
                'lcDetails': {'bankName': 'Trade Bank', 'documentsUploaded': 'true'},
                'paymentDetails': {'customTerms': 'Net 30'},
            },
        )

    def test_repeated_keys_become_lists(self) -> None:
        decoded = decode_form([('documents[]', 'https://a.example.com/1.pdf'), ('documents[]', 'https://a.example.com/2.pdf')])
        self.assertEqual(decoded['documents'], ['https://a.example.com/1.pdf', 'https://a.example.com/2.pdf'])

    def test_conflicting_keys_are_rejected(self) -> None:
        with self.assertRaises(ValidationFailed):
            decode_form([('lcDetails', 'flat'), ('lcDetails.bankName', 'Trade Bank')])

    def test_uploaded_files_are_rejected(self) -> None:
        with self.assertRaises(ValidationFailed):
            decode_form([('attachment', object())])

    def test_decoded_form_validates_as_quote_update(self) -> None:
        decoded = decode_form(
            [
                ('status', 'approved'),
                ('adminComments', ''),
                ('lcDetails.bankName', 'Trade Bank'),
                ('lcDetails.documentsUploaded', 'false'),
            ]
        )
        changes = QuoteRequestUpdate.model_validate(decoded).changes()
        self.assertEqual(changes['lc_details'], {'bank_name': 'Trade Bank', 'documents_uploaded': False})
        self.assertNotIn('admin_comments', changes)

    def test_boolean_words_stay_text_in_string_fields(self) -> None:
        decoded = decode_form([('adminComments', 'true'), ('lcDetails.documentsUploaded', 'true')])
        changes = QuoteRequestUpdate.model_validate(decoded).changes()
        self.assertEqual(changes['admin_comments'], 'true')
        self.assertEqual(changes['lc_details'], {'documents_uploaded': True})


if __name__ == '__main__':
    unittest.main()
