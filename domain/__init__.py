# cart configuration / pricing (domain.cart), menu catalog (domain.menu),
# loyalty redemption (domain.loyalty)
