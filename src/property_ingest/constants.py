"""Application-wide constants.

Magic numbers, provider field lists and keyword tables live here so the
cleaners and extractors stay free of literal data.

Constants are organized by category.
"""

# =============================================================================
# Structured Provider (Apify) Configuration
# =============================================================================

DEFAULT_APIFY_BASE_URL = "https://api.apify.com/v2"

# Wall-clock budget for a structured provider run, submit to dataset (seconds)
DEFAULT_PROVIDER_TIMEOUT_SECONDS = 170.0

# Constant polling interval while a provider run is in progress (seconds)
DEFAULT_PROVIDER_POLL_INTERVAL_SECONDS = 5.0

# Run statuses reported by the actor platform
RUN_STATUS_SUCCEEDED = "SUCCEEDED"
RUN_STATUS_FAILED = "FAILED"
RUN_STATUS_ABORTED = "ABORTED"
RUN_STATUS_TIMED_OUT = "TIMED-OUT"
TERMINAL_FAILURE_STATUSES = frozenset(
    (RUN_STATUS_FAILED, RUN_STATUS_ABORTED, RUN_STATUS_TIMED_OUT)
)

ZILLOW_ACTOR_ID = "maxcopell~zillow-detail-scraper"
REALTOR_ACTOR_ID = "epctex~realtor-scraper"

# =============================================================================
# HTML Scraping (ScraperAPI / Firecrawl) Configuration
# =============================================================================

DEFAULT_SCRAPERAPI_BASE_URL = "http://api.scraperapi.com/"

# Timeout for a single HTML scrape through the scraping API (seconds)
DEFAULT_HTML_FETCH_TIMEOUT_SECONDS = 170.0

DEFAULT_FIRECRAWL_BASE_URL = "https://api.firecrawl.dev/v1"

# Firecrawl formats requested, in order of preference; rawHtml keeps JSON-LD
FIRECRAWL_FORMATS = ("rawHtml", "html")

# =============================================================================
# AI Generation Configuration
# =============================================================================

DEFAULT_GENERATION_MODEL = "openai:gpt-4o-mini"

# Call 1 builds the structured configuration, so it runs cold
GENERATION_TEMPERATURE = 0.3

# Call 2 writes the title and highlights, so it runs warm
REFINEMENT_TEMPERATURE = 0.8

MAX_TITLE_LENGTH_CHARS = 60
HIGHLIGHT_COUNT = 6

# Upper bound on text handed to Call 1 (chars)
MAX_SOURCE_TEXT_CHARS = 60000

# Call 3 scores at most this many photos for the hero banner
MAX_ANALYZED_IMAGES = 10
IMAGE_ANALYSIS_TEMPERATURE = 0.2
IMAGE_SCORE_MAX = 10

# =============================================================================
# HTML Cleaning Thresholds
# =============================================================================

UNCONDITIONAL_REMOVE_TAGS = ("script", "style", "noscript", "iframe", "svg", "canvas")

AD_MARKERS = ("ads", "ad-", "advertisement", "tracking", "analytics")
CONSENT_MARKERS = ("cookie", "consent")
POPUP_MARKERS = ("popup", "modal")
BANNER_MARKERS = ("banner",)
SOCIAL_CLASS_MARKERS = (
    "share",
    "social",
    "facebook",
    "twitter",
    "instagram",
    "linkedin",
)
SOCIAL_KEYWORDS = (
    "share",
    "facebook",
    "twitter",
    "instagram",
    "linkedin",
    "pinterest",
    "tweet",
    "like",
)
PROPERTY_KEYWORDS = (
    "bed",
    "bath",
    "price",
    "sqft",
    "bedroom",
    "bathroom",
    "square",
    "address",
)

# Tags that are empty by nature and never removed for lacking text
VOID_TAGS = frozenset(("br", "hr", "img", "input", "meta", "link", "source", "wbr"))

POPUP_MAX_TEXT_CHARS = 50
BANNER_MAX_TEXT_CHARS = 100
SOCIAL_MAX_TEXT_CHARS = 100
SOCIAL_LINK_CLUSTER_MAX_TEXT_CHARS = 50
SOCIAL_LINK_CLUSTER_MIN_LINKS = 3
NAVIGATION_PROTECTED_TEXT_CHARS = 100
HEADER_MAX_TEXT_CHARS = 50

# A container is link-dominated when links outnumber text_length / this
NAVIGATION_TEXT_PER_LINK = 10

# =============================================================================
# Property Extraction Limits
# =============================================================================

MAX_EXTRACTED_IMAGES = 20
MAX_EXTRACTED_FEATURES = 20
MAX_FEATURE_TEXT_CHARS = 100
MIN_DESCRIPTION_TEXT_CHARS = 50
IMAGE_EXCLUDE_MARKERS = ("placeholder", "logo", "icon")

# =============================================================================
# Site-Specific HTML Processors
# =============================================================================

# Gallery thumbnails at or below this size (px, either side) are icons
MIN_GALLERY_IMAGE_SIZE_PX = 50
TRACKING_IMAGE_MARKERS = ("tracking", "beacon")

REALTOR_SIDEBAR_SELECTOR = 'div[data-testid="ldp-sidebar"]'
REALTOR_GALLERY_SELECTOR = 'div[data-testid="gallery-photo-container"]'

REDFIN_GALLERY_SELECTORS = (
    '[class*="gallery"] img',
    '[class*="photo"] img',
    '[class*="carousel"] img',
    '[id*="photo"] img',
    '[id*="gallery"] img',
    '[class*="PhotoViewer"] img',
)

HOMES_GALLERY_SELECTORS = (".hero-carousel-item img", '[class*="gallery"] img')

# Neighborhood, valuation and cross-sell sections with no listing facts
HOMES_NOISE_CLASSES = (
    "schools-container",
    "parks-in-area-section",
    "transportation-container",
    "area-factors-container",
    "environment-factor-container",
    "estimated-value",
    "home-valuation-report-cta-container",
    "home-values-container",
    "average-home-value-container",
    "ldp-property-history-container",
    "suggested-listings-container",
    "breadcrumbs-container",
)

# =============================================================================
# Provider Deny-Lists
# =============================================================================

ZILLOW_DENIED_FIELDS = frozenset(
    (
        "submitFlow",
        "collections",
        "rentalApplicationsAcceptedType",
        "foreclosureBalanceReportingDate",
        "housesForRentInZipcodeSearchUrl",
        "isCurrentSignedInAgentResponsible",
        "isCurrentSignedInUserVerifiedOwner",
        "apartmentsForRentInZipcodeSearchUrl",
        "hasApprovedThirdPartyVirtualTourUrl",
        "streetViewTileImageUrlMediumAddress",
        "streetViewTileImageUrlMediumLatLong",
        "isListingClaimedByCurrentSignedInUser",
        "streetViewMetadataUrlMediaWallAddress",
        "streetViewMetadataUrlMediaWallLatLong",
        "streetViewMetadataUrlMapLightboxAddress",
        "displayed_agents",
        "fallback_form",
        "hidden_fields",
        "hide_textarea",
        "request_trace",
        "tour_eligible",
        "authentication",
        "lender_details",
        "display_options",
        "ouid",
        "ssid",
        "zpid",
        "mlsid",
        "thumb",
        "hdpUrl",
        "brokerId",
        "building",
        "schools",
        "parcelId",
        "adTargets",
        "guid",
        "hood",
        "mlong",
        "yrblt",
        "listtp",
        "prange",
        "proptp",
        "aamgnrc1",
        "aamgnrc2",
        "sqftrange",
        "premieragent",
        "serviceversion",
        "boroughId",
        "bodyType",
        "electric",
        "parkName",
        "listingId",
        "tenantPays",
        "topography",
        "vegetation",
        "woodedArea",
        "builderName",
        "commonWalls",
        "contingency",
        "exclusions",
        "fireplaces",
        "inclusions",
        "entryLevel",
        "otherFacts",
        "otherParking",
        "poolFeatures",
        "storiesTotal",
        "entryLocation",
        "marketingType",
        "ownershipType",
        "petsMaxWeight",
        "structureType",
        "waterBodyName",
        "associationFee2",
        "associationName2",
        "associationPhone",
        "associationPhone2",
        "availabilityDate",
        "bathroomsPartial",
        "buildingFeatures",
        "elementarySchool",
        "exteriorFeatures",
        "interiorFeatures",
        "securityFeatures",
        "taxAssessedValue",
        "additionalFeeInfo",
        "communityFeatures",
        "developmentStatus",
        "fireplaceFeatures",
        "foundationDetails",
        "highSchoolDistrict",
        "mainLevelBedrooms",
        "mainLevelBathrooms",
        "waterfrontFeatures",
        "yearBuiltEffective",
        "bathroomsOneQuarter",
        "compensationBasedOn",
        "greenSustainability",
        "hasAttachedProperty",
        "numberOfUnitsVacant",
        "openParkingCapacity",
        "associationAmenities",
        "greenEnergyEfficient",
        "hasAdditionalParcels",
        "livingAreaRangeUnits",
        "middleOrJuniorSchool",
        "accessibilityFeatures",
        "bathroomsThreeQuarter",
        "constructionMaterials",
        "garageParkingCapacity",
        "greenEnergyGeneration",
        "greenIndoorAirQuality",
        "hasElectricOnProperty",
        "patioAndPorchFeatures",
        "aboveGradeFinishedArea",
        "belowGradeFinishedArea",
        "carportParkingCapacity",
        "coveredParkingCapacity",
        "cumulativeDaysOnMarket",
        "greenWaterConservation",
        "irrigationWaterRightsYN",
        "landLeaseExpirationDate",
        "elementarySchoolDistrict",
        "numberOfUnitsInCommunity",
        "specialListingConditions",
        "irrigationWaterRightsAcres",
        "additionalParcelsDescription",
        "middleOrJuniorSchoolDistrict",
        "greenBuildingVerificationType",
        "richMedia",
        "scrapedAt",
        "whatILove",
        "homeValues",
        "isFeatured",
        "livingArea",
        "lotPremium",
        "photoCount",
        "postingUrl",
        "taxHistory",
        "nearbyHomes",
        "attributionInfo",
        "listingMetadata",
        "priceHistory",
        "priceChange",
        "sellingSoon",
        "treatmentId",
        "percentile",
        "zipPlusFour",
        "communityUrl",
        "onsiteMessage",
        "placementId",
        "surfaceId",
        "flexibleLayout",
        "isAdsRestricted",
        "qualifiedTreatments",
        "pageViewCount",
        "tourViewCount",
        "hasPublicVideo",
        "hiResImageLink",
        "listingAccount",
        "listingSubType",
        "isPending",
        "isBankOwned",
        "isOpenHouse",
        "isComingSoon",
        "isForAuction",
        "isForeclosure",
        "foreclosingBank",
        "foreclosureDate",
        "listingProvider",
        "propertyTaxRate",
        "richMediaVideos",
        "tourEligibility",
        "tourAvailability",
        "isPropertyTourEligible",
        "datePostedString",
        "foreclosureTypes",
        "hdpTypeDimension",
        "isPremierBuilder",
        "listingsubtype",
        "isnewHome",
        "ispending",
        "isbankOwned",
        "isopenHouse",
        "iscomingSoon",
        "isforAuction",
        "isforeclosure",
        "mortgageZHLRates",
        "responsivePhotos",
        "subjectType",
        "originalPhotos",
        "postingContact",
        "virtualTourUrl",
        "ZoDsFsUpsellTop",
        "display",
        "placementName",
        "shouldDisplay",
        "decisionContext",
        "leadType",
        "leadTypes",
        "listPrice",
        "monthlyHoaFee",
        "hideZestimate",
        "isZillowOwned",
        "lastSoldPrice",
        "listingFeedID",
        "marketingName",
        "mortgageRates",
        "operatingSystem",
        "shouldDisplayUpsell",
        "hideMortgageAdDetailPage",
        "isGlobalHoldout",
        "selectedTreatment",
        "renderingProps",
        "overrideMargin0px",
        "hasBorderfalse",
        "actionLink",
        "actionText",
        "actionType",
        "actionButtonType",
        "secondaryActionLink",
        "secondaryActionText",
        "secondaryActionType",
        "secondaryActionButtonType",
        "skipDisplayReason",
        "isPlacementHoldout",
        "streetViewServiceUrl",
        "contactFormRenderData",
        "formidentifier",
        "brokerageproduct",
        "title",
        "listing",
        "oneadvisor",
        "directconnect",
        "toureligiblev2",
        "contactagenteligiblev2",
        "encodedzuid",
        "recentsales",
        "reviewcount",
        "businessname",
        "ratingaverage",
        "servicesoffered",
        "writereviewurl",
        "kellerwilliams",
        "infoboxvisible",
        "displayedlenders",
        "contactrecipients",
        "haspal",
        "badgetype",
        "firstname",
        "imagedata",
        "profileurl",
        "reviewsurl",
        "agentreason",
        "displayname",
        "hascaliberpal",
        "haswellsfargopal",
        "contactbuttontext",
        "regionphonenumber",
        "desktopphonenumber",
        "zhlprimaryctaeligible",
        "brokerageinfomustbeshown",
        "instantbookregion",
        "supportsunselectedleads",
        "variant",
        "pixelid",
        "opaquela",
        "pixelurl",
        "textarea",
        "textfields",
        "intl",
        "tourconfig",
        "agentmodule",
        "zpro",
        "phone",
        "prefix",
        "areacode",
        "apifyScraperId",
    )
)

# Field deny-lists that only apply inside a named parent object
ZILLOW_NESTED_DENIED_FIELDS = {
    "vrModel": frozenset(("revisionId", "vrModelGuid")),
    "resoFacts": frozenset(("gas", "attic")),
}

ZILLOW_ROOM_DENIED_FIELDS = frozenset(
    (
        "area",
        "level",
        "features",
        "roomArea",
        "roomWidth",
        "dimensions",
        "roomLength",
        "description",
        "roomAreaSource",
        "roomDimensions",
        "roomDescription",
        "roomLengthWidthSource",
    )
)

# Image format keys collapsed to their widest variant
IMAGE_FORMAT_KEYS = frozenset(("webp", "jpeg", "jpg", "png"))

REALTOR_DENIED_FIELDS = frozenset(("url", "loadedUrl", "requestId", "requestQueueId"))

# Envelope field some provider exports wrap their records in
PROVIDER_RECORDS_FIELD = "apifyData"

# =============================================================================
# Page Configuration
# =============================================================================

CURRENT_CONFIG_VERSION = 2

SECTION_TYPES = ("hero", "highlights", "features", "gallery", "agent", "contact")
