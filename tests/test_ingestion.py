# ========================
# tests/test_ingestion.py
# ========================

import unittest
import tempfile
import io
import os
import sys
import csv
from decimal import Decimal

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.merger.errors import ParseError
from src.merger.ingestion import ChunkedCSVParser


class TestChunkedCSVParser(unittest.TestCase):
    """Test the chunked CSV parser."""

    def setUp(self):
        self.test_data = [
            ['order_id', 'product_name', 'category', 'quantity', 'unit_price', 'region'],
            ['ORD-001', 'Product A', 'Electronics', '1', '100.0', 'North'],
            ['ORD-002', 'Product B', 'Electronics', '2', '200.0', 'South'],
            ['ORD-003', 'Product C', 'Fashion', '1', '50.0', 'East'],
            ['ORD-004', 'Product D', 'Fashion', '3', '75.0', 'West'],
        ]

    def _to_bytes(self, rows):
        buffer = io.StringIO()
        csv.writer(buffer).writerows(rows)
        return buffer.getvalue().encode('utf-8')

    def test_chunked_processing(self):
        """Test that small chunks produce several batches with every row."""
        parser = ChunkedCSVParser('sales.csv', chunk_size=32)
        batches = list(parser.iter_batches(io.BytesIO(self._to_bytes(self.test_data))))

        self.assertGreater(len(batches), 1)
        rows = [row for batch in batches for row in batch]
        self.assertEqual(len(rows), 4)
        self.assertEqual(parser.row_count, 4)
        self.assertGreater(parser.chunks_read, 1)

        self.assertEqual(parser.header, self.test_data[0])
        self.assertEqual(rows[0]['order_id'], 'ORD-001')
        self.assertEqual(rows[0]['quantity'], 1)
        self.assertEqual(rows[1]['unit_price'], Decimal('200.0'))
        self.assertEqual(rows[3]['region'], 'West')

    def test_single_chunk_yields_one_batch(self):
        parser = ChunkedCSVParser('sales.csv')
        batches = list(parser.iter_batches(io.BytesIO(self._to_bytes(self.test_data))))

        self.assertEqual(len(batches), 1)
        self.assertEqual(len(batches[0]), 4)

    def test_reading_from_file(self):
        """Test parsing a file on disk."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.csv', delete=False, newline='') as f:
            writer = csv.writer(f)
            writer.writerows(self.test_data)
            temp_file_path = f.name

        try:
            parser = ChunkedCSVParser(os.path.basename(temp_file_path), chunk_size=16)
            with open(temp_file_path, 'rb') as stream:
                header, rows = parser.parse(stream)

            self.assertEqual(header, self.test_data[0])
            self.assertEqual(len(rows), 4)
            self.assertEqual(parser.bytes_read, os.path.getsize(temp_file_path))
        finally:
            os.unlink(temp_file_path)

    def test_multibyte_characters_split_across_chunks(self):
        data = "name,city\nJosé,São Paulo\nZoë,Zürich\n".encode('utf-8')
        parser = ChunkedCSVParser('unicode.csv', chunk_size=3)
        header, rows = parser.parse(io.BytesIO(data))

        self.assertEqual(header, ['name', 'city'])
        self.assertEqual(rows[0], {'name': 'José', 'city': 'São Paulo'})
        self.assertEqual(rows[1], {'name': 'Zoë', 'city': 'Zürich'})

    def test_quoted_fields_with_delimiters_and_newlines(self):
        data = b'id,note\n1,"hello, world"\n2,"line one\nline two"\n'
        parser = ChunkedCSVParser('quoted.csv', chunk_size=5)
        _, rows = parser.parse(io.BytesIO(data))

        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0]['note'], 'hello, world')
        self.assertEqual(rows[1]['note'], 'line one\nline two')

    def test_byte_order_mark_and_crlf(self):
        data = b'\xef\xbb\xbfa,b\r\n1,2\r\n'
        header, rows = ChunkedCSVParser('bom.csv').parse(io.BytesIO(data))

        self.assertEqual(header, ['a', 'b'])
        self.assertEqual(rows, [{'a': 1, 'b': 2}])

    def test_carriage_return_line_endings(self):
        header, rows = ChunkedCSVParser('mac.csv').parse(io.BytesIO(b'a,b\r1,2\r3,4\r'))

        self.assertEqual(header, ['a', 'b'])
        self.assertEqual(rows, [{'a': 1, 'b': 2}, {'a': 3, 'b': 4}])

    def test_crlf_split_across_chunks(self):
        """Every chunk boundary falls somewhere inside a line ending."""
        data = b'a,b\r\n1,2\r\n3,4\r\n'
        for chunk_size in range(1, 6):
            with self.subTest(chunk_size=chunk_size):
                header, rows = ChunkedCSVParser('crlf.csv', chunk_size=chunk_size).parse(io.BytesIO(data))
                self.assertEqual(header, ['a', 'b'])
                self.assertEqual(rows, [{'a': 1, 'b': 2}, {'a': 3, 'b': 4}])

    def test_mixed_line_endings_and_quoted_carriage_return(self):
        data = b'id,note\r1,"one\rtwo"\n2,plain\r\n3,last'
        _, rows = ChunkedCSVParser('mixed.csv', chunk_size=4).parse(io.BytesIO(data))

        self.assertEqual(rows, [
            {'id': 1, 'note': 'one\rtwo'},
            {'id': 2, 'note': 'plain'},
            {'id': 3, 'note': 'last'},
        ])

    def test_duplicate_header_names(self):
        header, rows = ChunkedCSVParser('dupes.csv').parse(io.BytesIO(b'a,a,b,a\n1,2,3,4\n'))

        self.assertEqual(header, ['a', 'a_1', 'b', 'a_2'])
        self.assertEqual(rows[0], {'a': 1, 'a_1': 2, 'b': 3, 'a_2': 4})

    def test_ragged_rows_and_blank_lines(self):
        """Short rows are padded, long rows truncated and blank lines skipped."""
        data = b'a,b,c\n1\n\n4,5,6,7\n'
        _, rows = ChunkedCSVParser('ragged.csv').parse(io.BytesIO(data))

        self.assertEqual(rows, [
            {'a': 1, 'b': '', 'c': ''},
            {'a': 4, 'b': 5, 'c': 6},
        ])

    def test_missing_final_newline(self):
        _, rows = ChunkedCSVParser('tail.csv', chunk_size=4).parse(io.BytesIO(b'a,b\n1,2\n3,4'))
        self.assertEqual(rows, [{'a': 1, 'b': 2}, {'a': 3, 'b': 4}])

    def test_empty_file(self):
        parser = ChunkedCSVParser('empty.csv')
        batches = list(parser.iter_batches(io.BytesIO(b'')))

        self.assertEqual(batches, [])
        self.assertIsNone(parser.header)
        self.assertEqual(parser.row_count, 0)

    def test_header_only_file(self):
        header, rows = ChunkedCSVParser('header.csv').parse(io.BytesIO(b'a,b\n'))
        self.assertEqual(header, ['a', 'b'])
        self.assertEqual(rows, [])

    def test_progress_callback(self):
        counts = []
        parser = ChunkedCSVParser('sales.csv', chunk_size=32, progress_callback=counts.append)
        parser.parse(io.BytesIO(self._to_bytes(self.test_data)))

        self.assertEqual(sum(counts), 4)

    def test_invalid_encoding_raises_parse_error(self):
        parser = ChunkedCSVParser('binary.csv')
        with self.assertRaises(ParseError) as context:
            parser.parse(io.BytesIO(b'a,b\n\xff\xfe\x00\x01,2\n'))

        self.assertEqual(context.exception.file_name, 'binary.csv')
        self.assertIn('binary.csv', str(context.exception))

    def test_unterminated_quote_raises_parse_error(self):
        parser = ChunkedCSVParser('broken.csv')
        with self.assertRaises(ParseError) as context:
            parser.parse(io.BytesIO(b'a,b\n"unterminated,1\n'))

        self.assertEqual(context.exception.file_name, 'broken.csv')

    def test_invalid_chunk_size(self):
        with self.assertRaises(ValueError):
            ChunkedCSVParser('sales.csv', chunk_size=0)


if __name__ == '__main__':
    unittest.main()
