"""GraphQL documents used by the discount sync pipeline.

The discount fragment covers all eight Shopify discount types; each inline
fragment only asks for fields that exist on that type.
"""

_MINIMUM_REQUIREMENT = """
    minimumRequirement {
      ... on DiscountMinimumSubtotal {
        greaterThanOrEqualToSubtotal { amount currencyCode }
      }
      ... on DiscountMinimumQuantity {
        greaterThanOrEqualToQuantity
      }
    }
"""

_CUSTOMER_GETS = """
    customerGets {
      appliesOnOneTimePurchase
      appliesOnSubscription
      items {
        ... on DiscountCollections {
          collections(first: 100) { nodes { id } }
        }
        ... on DiscountProducts {
          products(first: 100) { nodes { id } }
          productVariants(first: 100) { nodes { id } }
        }
      }
      value {
        ... on DiscountAmount { amount { amount currencyCode } }
        ... on DiscountPercentage { percentage }
      }
    }
"""

_CODES = """
    codesCount { count }
    codes(first: 100) {
      pageInfo { hasNextPage endCursor }
      nodes { code id }
    }
"""

_COMMON = """
    title
    status
    startsAt
    endsAt
    discountClass
    discountClasses
    context { __typename }
"""


def _fragment(type_name, *parts):
    return f"... on {type_name} {{{''.join(parts)}}}"


DISCOUNT_FRAGMENT = "\n".join(
    [
        "__typename",
        _fragment("DiscountAutomaticBasic", _COMMON, "summary", _MINIMUM_REQUIREMENT, _CUSTOMER_GETS),
        _fragment("DiscountCodeBasic", _COMMON, "summary", _CODES, _MINIMUM_REQUIREMENT, _CUSTOMER_GETS),
        _fragment("DiscountAutomaticBxgy", _COMMON, "summary", _CUSTOMER_GETS),
        _fragment("DiscountCodeBxgy", _COMMON, "summary", _CODES, _CUSTOMER_GETS),
        _fragment("DiscountAutomaticFreeShipping", _COMMON, "summary", _MINIMUM_REQUIREMENT),
        _fragment("DiscountCodeFreeShipping", _COMMON, "summary", _CODES, _MINIMUM_REQUIREMENT),
        _fragment("DiscountAutomaticApp", _COMMON),
        _fragment("DiscountCodeApp", _COMMON, _CODES),
    ]
)

# Single discount node, used by discounts/create and discounts/update.
GET_DISCOUNT_NODE_QUERY = f"""
query GetDiscountNode($id: ID!) {{
  discountNode(id: $id) {{
    id
    discount {{
      {DISCOUNT_FRAGMENT}
    }}
  }}
}}
"""

# Every discount in the shop, no status/class filter: unsupported discounts
# still need a classification.
GET_ALL_DISCOUNTS_QUERY = f"""
query GetAllDiscounts($first: Int!, $after: String) {{
  discountNodes(first: $first, after: $after) {{
    pageInfo {{ hasNextPage endCursor }}
    edges {{
      node {{
        id
        discount {{
          {DISCOUNT_FRAGMENT}
        }}
      }}
    }}
  }}
}}
"""

_CODE_PAGE = """
        codes(first: $first, after: $after) {
          pageInfo { hasNextPage endCursor }
          nodes { code }
        }
"""

GET_DISCOUNT_CODES_QUERY = f"""
query GetDiscountCodes($id: ID!, $first: Int!, $after: String) {{
  codeDiscountNode(id: $id) {{
    codeDiscount {{
      ... on DiscountCodeBasic {{{_CODE_PAGE}}}
      ... on DiscountCodeBxgy {{{_CODE_PAGE}}}
      ... on DiscountCodeFreeShipping {{{_CODE_PAGE}}}
      ... on DiscountCodeApp {{{_CODE_PAGE}}}
    }}
  }}
}}
"""

GET_COLLECTION_PRODUCTS_QUERY = """
query GetCollectionProducts($id: ID!, $first: Int!, $after: String) {
  collection(id: $id) {
    id
    title
    products(first: $first, after: $after) {
      pageInfo { hasNextPage endCursor }
      edges { node { id } }
    }
  }
}
"""

GET_VARIANT_PRODUCT_QUERY = """
query GetVariantProduct($id: ID!) {
  productVariant(id: $id) {
    product { id }
  }
}
"""

GET_PRODUCT_VARIANTS_QUERY = """
query GetProductVariants($id: ID!, $first: Int!, $after: String) {
  product(id: $id) {
    id
    title
    handle
    priceRangeV2 {
      minVariantPrice { amount }
      maxVariantPrice { amount }
    }
    variants(first: $first, after: $after) {
      pageInfo { hasNextPage endCursor }
      edges { node { id } }
    }
  }
}
"""
