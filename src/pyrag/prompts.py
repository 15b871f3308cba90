"""Default prompt templates.

Templates use ``str.format`` placeholders; literal braces are doubled.
"""

DEFAULT_TEXT_QA_PROMPT = """Context information is below.
---------------------
{context_str}
---------------------
Given the context information and not prior knowledge, answer the query.
Query: {query_str}
Answer: """

DEFAULT_SUMMARY_PROMPT = """Write a summary of the following. Try to use only the information provided.
Try to include as many key details as possible.

{context_str}

SUMMARY:"""

DEFAULT_TREE_INSERT_PROMPT = """Context information is below. It is provided in a numbered list (1 to {num_chunks}),
where each item in the list corresponds to a summary.

---------------------
{context_list}
---------------------

Given the context information, here is a new piece of information: {new_chunk_text}

Answer with the number corresponding to the summary that should be updated.
The answer should be the number corresponding to the summary that is most relevant to the question.
"""

DEFAULT_TREE_SELECT_PROMPT = """Some choices are given below. It is provided in a numbered list (1 to {num_chunks}),
where each item in the list corresponds to a summary.

---------------------
{context_list}
---------------------

Using only the choices above and not prior knowledge, return the choice that is most relevant to the question: '{query_str}'

Provide choice in the following format: 'ANSWER: <number>' and explain why this summary was selected over the others.
"""

DEFAULT_TREE_SELECT_MULTIPLE_PROMPT = """Some choices are given below. It is provided in a numbered list (1 to {num_chunks}),
where each item in the list corresponds to a summary.

---------------------
{context_list}
---------------------

Using only the choices above and not prior knowledge, return the top choices (no more than {branching_factor}, ranked by most relevant to least) that are most relevant to the question: '{query_str}'

Provide choices in the following format: 'ANSWER: <numbers>' and explain why these summaries were selected over the others.
"""

DEFAULT_KEYWORD_EXTRACT_PROMPT = """Some text is provided below. Given the text, extract up to {max_keywords} keywords from the text. Avoid stopwords.
---------------------
{text}
---------------------
Provide keywords in the following comma-separated format: 'KEYWORDS: <keywords>'
"""

DEFAULT_QUERY_KEYWORD_EXTRACT_PROMPT = """A question is provided below. Given the question, extract up to {max_keywords} keywords from the text. Focus on extracting the keywords that we can use to best lookup answers to the question. Avoid stopwords.
---------------------
Question: {question}
---------------------
Provide keywords in the following comma-separated format: 'KEYWORDS: <keywords>'
"""

DEFAULT_KG_TRIPLET_EXTRACT_PROMPT = """Some text is provided below. Given the text, extract up to {max_knowledge_triplets} knowledge triplets in the form of (subject, predicate, object). Avoid stopwords.
---------------------
Example:
Text: Alice is Bob's mother.
Triplets:
(Alice, is mother of, Bob)
Text: Philz is a coffee shop founded in Berkeley in 1982.
Triplets:
(Philz, is, coffee shop)
(Philz, founded in, Berkeley)
(Philz, founded in, 1982)
---------------------
Text: {text}
Triplets:
"""

DEFAULT_CHOICE_SELECT_PROMPT = """A list of documents is shown below. Each document has a number next to it along with a summary of the document. A question is also provided.
Respond with the numbers of the documents you should consult to answer the question, in order of relevance, as well as the relevance score. The relevance score is a number from 1-10 based on how relevant you think the document is to the question.
Do not include any documents that are not relevant to the question.
Example format:
Document 1:
<summary of document 1>

Document 2:
<summary of document 2>

...

Document 10:
<summary of document 10>

Question: <question>
Answer:
Doc: 9, Relevance: 7
Doc: 3, Relevance: 4
Doc: 7, Relevance: 3

Let's try this now:

{context_str}
Question: {query_str}
Answer:
"""

DEFAULT_RERANK_PROMPT = """You are a relevance evaluator. Given a query and a document excerpt, rate how relevant the document is to the query on a scale of 0 to 10.

Query: {query}

Document: {document}

Return only a single number between 0 and 10, with no additional text."""

DEFAULT_QUERY_GEN_PROMPT = """You are a helpful assistant that generates multiple search queries based on a single input query. Generate {num_queries} search queries, one on each line, related to the following input query:
Query: {query}
Queries:
"""

DEFAULT_SINGLE_SELECT_PROMPT = """Some choices are given below. It is provided in a numbered list (1 to {num_choices}), where each item in the list corresponds to a summary.
---------------------
{context_list}
---------------------
Using only the choices above and not prior knowledge, return the choice that is most relevant to the question: '{query_str}'

The output should be ONLY JSON formatted as a JSON instance.

Here is an example:
[
    {{
        "choice": 1,
        "reason": "<insert reason for choice>"
    }}
]"""

DEFAULT_MULTI_SELECT_PROMPT = """Some choices are given below. It is provided in a numbered list (1 to {num_choices}), where each item in the list corresponds to a summary.
---------------------
{context_list}
---------------------
Using only the choices above and not prior knowledge, return the top choices (no more than {max_outputs}, but only select what is needed) that are most relevant to the question: '{query_str}'

The output should be ONLY JSON formatted as a JSON instance.

Here is an example:
[
    {{
        "choice": 1,
        "reason": "<insert reason for choice>"
    }},
    ...
]"""
