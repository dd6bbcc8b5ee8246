from .policy_file_parser import ParseResult, parse_insurance_file, map_policy_type, match_company
from .text_parser import parse_policy_from_text

__all__ = [
    'ParseResult', 'parse_insurance_file', 'map_policy_type', 'match_company',
    'parse_policy_from_text',
]
