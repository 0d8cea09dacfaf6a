"""
Lexical query building for full-text search.

Queries are split into word-like tokens per script, stop words (English and
Chinese) are removed, and the survivors are OR-ed together in tsquery syntax:

    "the quick fox"  ->  "quick | fox"

When nothing survives, the raw query text is used instead.
"""
import re
from dataclasses import dataclass, field
from typing import List

CHINESE_STOP_WORDS = frozenset([
    '的', '在', '是', '了', '我', '你', '他', '她', '它', '请问', '如何', '一个', '什么', '怎么',
    '这', '那', '和', '与', '或', '但', '因为', '所以', '如果', '虽然', '可是', '不过',
    '也', '都', '还', '就', '又', '很', '最', '更', '非常', '特别', '比较', '相当',
    '对', '于', '把', '被', '让', '使', '给', '为', '从', '到', '向', '往', '朝',
    '上', '下', '里', '外', '前', '后', '左', '右', '中', '间', '内', '以', '及',
])

ENGLISH_STOP_WORDS = frozenset([
    'a', 'an', 'and', 'are', 'as', 'at', 'be', 'by', 'for', 'from', 'has', 'he',
    'in', 'is', 'it', 'its', 'of', 'on', 'that', 'the', 'to', 'was', 'were', 'will',
    'with', 'would', 'could', 'should', 'can', 'may', 'might', 'must', 'shall',
    'this', 'these', 'those', 'i', 'you', 'we', 'they', 'me', 'him', 'her',
    'us', 'them', 'my', 'your', 'his', 'our', 'their', 'am', 'have', 'had', 'do',
    'does', 'did', 'get', 'got', 'go', 'went', 'come', 'came', 'make', 'made',
    'take', 'took', 'see', 'saw', 'know', 'knew', 'think', 'thought', 'say', 'said',
    'tell', 'told', 'ask', 'asked', 'give', 'gave', 'find', 'found', 'work', 'worked',
    'call', 'called', 'try', 'tried', 'need', 'needed', 'feel', 'felt', 'become',
    'became', 'leave', 'left', 'put', 'keep', 'kept', 'let', 'begin', 'began',
    'seem', 'seemed', 'help', 'helped', 'show', 'showed', 'hear', 'heard', 'play',
    'played', 'run', 'ran', 'move', 'moved', 'live', 'lived', 'believe', 'believed',
    'hold', 'held', 'bring', 'brought', 'happen', 'happened', 'write', 'wrote',
    'sit', 'sat', 'stand', 'stood', 'lose', 'lost', 'pay', 'paid', 'meet', 'met',
    'include', 'included', 'continue', 'continued', 'set', 'learn', 'learned',
    'change', 'changed', 'lead', 'led', 'understand', 'understood', 'watch', 'watched',
    'follow', 'followed', 'stop', 'stopped', 'create', 'created', 'speak', 'spoke',
    'read', 'remember', 'remembered', 'consider', 'considered', 'appear', 'appeared',
    'buy', 'bought', 'wait', 'waited', 'serve', 'served', 'die', 'died', 'send',
    'sent', 'expect', 'expected', 'build', 'built', 'stay', 'stayed', 'fall', 'fell',
    'cut', 'reach', 'reached', 'kill', 'killed', 'remain', 'remained', 'suggest',
    'suggested', 'raise', 'raised', 'pass', 'passed', 'sell', 'sold', 'require',
    'required', 'report', 'reported', 'decide', 'decided', 'pull', 'pulled',
])

STOP_WORDS = CHINESE_STOP_WORDS | ENGLISH_STOP_WORDS

_CJK = "㐀-䶿一-鿿豈-﫿"
_TOKEN_PATTERN = re.compile(rf"[{_CJK}]+|[^\W_{_CJK}]+")
_CJK_RUN = re.compile(rf"^[{_CJK}]+$")
_MAX_STOP_WORD_LEN = max(len(w) for w in CHINESE_STOP_WORDS)


@dataclass
class LexicalQuery:
    raw: str
    tokens: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        """tsquery text when tokens survived, the raw query otherwise."""
        if self.tokens:
            return " | ".join(self.tokens)
        return self.raw


def _segment_cjk(run: str) -> List[str]:
    """
    Forward maximum matching against the Chinese stop words: stop words are
    cut out, the spans between them are kept as tokens.
    """
    segments: List[str] = []
    current = []
    i = 0
    while i < len(run):
        for size in range(min(_MAX_STOP_WORD_LEN, len(run) - i), 0, -1):
            if run[i:i + size] in CHINESE_STOP_WORDS:
                if current:
                    segments.append("".join(current))
                    current = []
                i += size
                break
        else:
            current.append(run[i])
            i += 1
    if current:
        segments.append("".join(current))
    return segments


def tokenize(text: str) -> List[str]:
    """Lowercased word tokens with stop words removed, in query order."""
    tokens: List[str] = []
    for match in _TOKEN_PATTERN.finditer(text or ""):
        word = match.group(0).lower()
        if _CJK_RUN.match(word):
            tokens.extend(_segment_cjk(word))
        elif word not in STOP_WORDS:
            tokens.append(word)
    return tokens


def build_lexical_query(query: str) -> LexicalQuery:
    return LexicalQuery(raw=query, tokens=tokenize(query))
