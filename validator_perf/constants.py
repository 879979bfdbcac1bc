# https://github.com/ethereum/consensus-specs/blob/dev/specs/phase0/beacon-chain.md#misc
FAR_FUTURE_EPOCH = 2**64 - 1
# https://github.com/ethereum/consensus-specs/blob/dev/specs/phase0/beacon-chain.md#bls-signatures
BLS_PUBLIC_KEY_SIZE = 48

# https://github.com/ethereum/consensus-specs/blob/dev/specs/altair/beacon-chain.md#get_attestation_participation_flag_indices
MIN_ATTESTATION_INCLUSION_DELAY = 1
TIMELY_HEAD_MAX_INCLUSION_DELAY = MIN_ATTESTATION_INCLUSION_DELAY
# integer_squareroot(SLOTS_PER_EPOCH) on mainnet
TIMELY_SOURCE_MAX_INCLUSION_DELAY = 5
TIMELY_TARGET_MAX_INCLUSION_DELAY = 32

# Votes for epoch N can be included up to the first slot of epoch N + 2
ATTESTATION_INCLUSION_EPOCHS = 2
